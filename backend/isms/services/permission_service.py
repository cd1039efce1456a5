# Overview: Service-layer operations for permission; encapsulates business logic and database work.

"""
Permission Matrix and Security Event Logging

WHY: Enforce role-based access control on the server and keep an audit
trail of denials.

DESIGN PRINCIPLES:
- Fail closed: a (role, module) pair with no row grants nothing
- Log denials only: grants are not logged
- The matrix is data, not code: seeded from DEFAULT_ROLE_PERMISSIONS and
  fully replaceable per role or as a whole
"""

from __future__ import annotations

from ..extensions import db
from ..models import RolePermission, SecurityEvent
from ..permissions import Action, MODULE_IDS, Role, iter_default_rows, validate_module
from ..validation import ValidationError
from isms.time_utils import utcnow


class PermissionDeniedError(Exception):
    """Raised when a role lacks the required capability."""
    pass


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Append a security event and commit it.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED
    - LOGOUT
    - PERMISSIONS_CHANGED
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:512] or None,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()

    return event


def _parse_flag(entry: dict, key: str, alt: str) -> bool:
    value = entry.get(key, entry.get(alt, False))
    if not isinstance(value, bool):
        raise ValidationError(f"{key} must be a boolean")
    return value


class PermissionMatrix:
    """
    Role -> module -> (read, write, delete) lookup over the role_permissions table.

    Takes the session explicitly so callers (routes, CLI, tests) decide which
    store it reads and writes. Mutating methods flush but never commit.
    """

    def __init__(self, session):
        self.session = session

    def load(self) -> dict[str, dict[str, dict[str, bool]]]:
        """Whole matrix as {role: {module: {can_read, can_write, can_delete}}}."""
        matrix: dict[str, dict[str, dict[str, bool]]] = {r.value: {} for r in Role}
        rows = self.session.query(RolePermission).order_by(RolePermission.role, RolePermission.module).all()
        for row in rows:
            matrix[row.role.value][row.module] = {
                "can_read": row.can_read,
                "can_write": row.can_write,
                "can_delete": row.can_delete,
            }
        return matrix

    def for_role(self, role) -> dict[str, dict[str, bool]]:
        """One role's capabilities for every module; missing rows read as all-false."""
        role = Role.parse(role)
        rows = {
            row.module: row
            for row in self.session.query(RolePermission).filter_by(role=role).all()
        }
        result = {}
        for module_id in MODULE_IDS:
            row = rows.get(module_id)
            result[module_id] = {
                "can_read": bool(row and row.can_read),
                "can_write": bool(row and row.can_write),
                "can_delete": bool(row and row.can_delete),
            }
        return result

    def allows(self, role, module: str, action) -> bool:
        role = Role.parse(role)
        action = Action(action)
        row = self.session.query(RolePermission).filter_by(role=role, module=module).first()
        if row is None:
            return False
        return bool(getattr(row, action.column))

    def save_role(self, role, entries) -> list[RolePermission]:
        """
        Replace every row for one role with entries.

        entries is a list of {module, can_read|canRead, can_write|canWrite,
        can_delete|canDelete}. Modules left out end up with no row (denied).
        """
        try:
            role = Role.parse(role)
        except ValueError as exc:
            raise ValidationError(str(exc))
        if not isinstance(entries, list):
            raise ValidationError("permissions must be a list")

        parsed = {}
        for entry in entries:
            if not isinstance(entry, dict):
                raise ValidationError("Each permission entry must be an object")
            module = entry.get("module")
            if not validate_module(module):
                raise ValidationError(f"Unknown module: {module}")
            if module in parsed:
                raise ValidationError(f"Duplicate module: {module}")
            parsed[module] = (
                _parse_flag(entry, "can_read", "canRead"),
                _parse_flag(entry, "can_write", "canWrite"),
                _parse_flag(entry, "can_delete", "canDelete"),
            )

        self.session.query(RolePermission).filter_by(role=role).delete(synchronize_session=False)
        rows = [
            RolePermission(role=role, module=module, can_read=r, can_write=w, can_delete=d)
            for module, (r, w, d) in parsed.items()
        ]
        self.session.add_all(rows)
        self.session.flush()
        return rows

    def reset_defaults(self) -> int:
        """Drop the whole table and re-seed it from the default matrix. Returns rows written."""
        self.session.query(RolePermission).delete(synchronize_session=False)
        count = 0
        for role, module, r, w, d in iter_default_rows():
            self.session.add(RolePermission(role=role, module=module, can_read=r, can_write=w, can_delete=d))
            count += 1
        self.session.flush()
        return count

    def seed_if_empty(self) -> int:
        if self.session.query(RolePermission.id).first() is not None:
            return 0
        return self.reset_defaults()


def require_permission(
    *,
    user,
    module: str,
    action,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Raise PermissionDeniedError unless the user's role holds action on module.

    Denials are written to security_events.
    """
    action = Action(action)
    if PermissionMatrix(db.session).allows(user.role, module, action):
        return

    log_security_event(
        user_id=user.id,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=f"{module}:{action.value}",
        reason=f"Role {user.role.value} lacks {action.value} on {module}",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    raise PermissionDeniedError(f"Role {user.role.value} cannot {action.value} {module}")
