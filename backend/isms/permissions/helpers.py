# Overview: Utility functions for module lookups and default-table expansion.

from .defaults import DEFAULT_ROLE_PERMISSIONS
from .modules import MODULE_IDS


def validate_module(module_id):
    """Check if a module id is valid."""
    return module_id in MODULE_IDS


def iter_default_rows():
    """Yield (role, module, can_read, can_write, can_delete) for the default table."""
    for role, modules in DEFAULT_ROLE_PERMISSIONS.items():
        for module_id, (can_read, can_write, can_delete) in modules.items():
            yield role, module_id, can_read, can_write, can_delete
