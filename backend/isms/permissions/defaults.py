# Overview: Default role -> module -> (read, write, delete) table.
# Seeded on `flask system init` and restored by the permissions reset operation.

from .roles import Role

_FULL = (True, True, True)
_RW = (True, True, False)
_R = (True, False, False)
_NONE = (False, False, False)


DEFAULT_ROLE_PERMISSIONS: dict[Role, dict[str, tuple[bool, bool, bool]]] = {
    Role.ADMIN: {
        "dashboard": _FULL,
        "inventory": _FULL,
        "pos": _FULL,
        "installments": _FULL,
        "returns": _FULL,
        "suppliers": _FULL,
        "purchase-orders": _FULL,
        "stock-count": _FULL,
        "expenses": _FULL,
        "profit-loss": _FULL,
        "reports": _FULL,
        "users": _FULL,
        "settings": _FULL,
    },
    Role.MANAGER: {
        "dashboard": _RW,
        "inventory": _RW,
        "pos": _RW,
        "installments": _RW,
        "returns": _RW,
        "suppliers": _RW,
        "purchase-orders": _RW,
        "stock-count": _RW,
        "expenses": _RW,
        "profit-loss": _R,
        "reports": _R,
        "users": _R,
        "settings": _R,
    },
    Role.CASHIER: {
        "dashboard": _R,
        "inventory": _R,
        "pos": _RW,
        "installments": _RW,
        "returns": _RW,
        "suppliers": _NONE,
        "purchase-orders": _NONE,
        "stock-count": _NONE,
        "expenses": _NONE,
        "profit-loss": _NONE,
        "reports": _NONE,
        "users": _NONE,
        "settings": _NONE,
    },
    Role.ACCOUNTANT: {
        "dashboard": _R,
        "inventory": _NONE,
        "pos": _NONE,
        "installments": _R,
        "returns": _NONE,
        "suppliers": _NONE,
        "purchase-orders": _NONE,
        "stock-count": _NONE,
        "expenses": _RW,
        "profit-loss": _R,
        "reports": _RW,
        "users": _NONE,
        "settings": _NONE,
    },
    Role.WINGER: {
        "dashboard": _R,
        "inventory": _R,
        "pos": _RW,
        "installments": _NONE,
        "returns": _NONE,
        "suppliers": _NONE,
        "purchase-orders": _NONE,
        "stock-count": _R,
        "expenses": _NONE,
        "profit-loss": _NONE,
        "reports": _NONE,
        "users": _NONE,
        "settings": _NONE,
    },
    Role.SHOP_ASSISTANT: {
        "dashboard": _R,
        "inventory": _RW,
        "pos": _RW,
        "installments": _NONE,
        "returns": _NONE,
        "suppliers": _NONE,
        "purchase-orders": _NONE,
        "stock-count": _RW,
        "expenses": _NONE,
        "profit-loss": _NONE,
        "reports": _NONE,
        "users": _NONE,
        "settings": _NONE,
    },
}
