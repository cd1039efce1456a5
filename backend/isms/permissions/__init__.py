# Overview: Permission matrix package.
# Re-exports all public APIs for convenient imports.

from .roles import Role, Action
from .modules import MODULES, MODULE_IDS
from .defaults import DEFAULT_ROLE_PERMISSIONS
from .helpers import (
    validate_module,
    iter_default_rows,
)

__all__ = [
    "Role",
    "Action",
    "MODULES",
    "MODULE_IDS",
    "DEFAULT_ROLE_PERMISSIONS",
    "validate_module",
    "iter_default_rows",
]
