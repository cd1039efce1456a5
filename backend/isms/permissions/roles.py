# Overview: Closed set of staff roles and the three capabilities a role can hold per module.

from enum import Enum


class Role(str, Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    CASHIER = "CASHIER"
    ACCOUNTANT = "ACCOUNTANT"
    WINGER = "WINGER"
    SHOP_ASSISTANT = "SHOP_ASSISTANT"

    @classmethod
    def parse(cls, value) -> "Role":
        """Accept a Role or its (case-insensitive) name; raise ValueError otherwise."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown role: {value}") from None


class Action(str, Enum):
    READ = "read"
    WRITE = "write"
    DELETE = "delete"

    @property
    def column(self) -> str:
        return f"can_{self.value}"
