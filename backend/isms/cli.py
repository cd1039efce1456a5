# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/isms/cli.py
# Run from backend/ with FLASK_APP=wsgi.py:
#   flask system init [--admin-password ...]    schema, permissions, settings, admin user
#   flask system reset-db --yes                 drop and recreate every table (dev only)
#   flask users create|list
#   flask perms list [--role ROLE] | reset | check ROLE MODULE ACTION

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .permissions import Action, MODULE_IDS, Role
from .services.auth_service import create_user, PasswordValidationError
from .services.permission_service import PermissionMatrix
from .services.settings_service import SettingsService
from .validation import ConflictError, ValidationError


ROLE_CHOICES = click.Choice([r.value for r in Role], case_sensitive=False)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-password', default='Password123!', help='Password for the default admin user')
@with_appcontext
def init_system(admin_password):
    """
    Initialize the shop: schema, permission matrix, settings and admin user.

    Safe to run repeatedly; existing rows are left alone.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing ISMS...")

    db.create_all()
    click.echo("PASS Tables ready")

    seeded = PermissionMatrix(db.session).seed_if_empty()
    if seeded:
        click.echo(f"PASS Seeded {seeded} permission rows")
    else:
        click.echo("PASS Permission matrix already present, left unchanged")

    settings = SettingsService(db.session).load()
    click.echo(f"PASS Shop settings: {settings.business_name} ({settings.currency})")

    if db.session.query(User).filter_by(username="admin").first():
        click.echo("WARN  User 'admin' already exists, skipping...")
    else:
        try:
            create_user(
                username="admin",
                email="admin@isms.local",
                name="Administrator",
                password=admin_password,
                role=Role.ADMIN,
                rounds=current_app.config["BCRYPT_ROUNDS"],
            )
            click.echo("PASS Created user: admin (admin@isms.local) with role ADMIN")
        except PasswordValidationError as e:
            db.session.rollback()
            raise click.ClickException(f"Password validation failed for 'admin': {e}")

    db.session.commit()
    click.echo("DONE ISMS initialized. Change the admin password before going live.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """Drop and recreate every table. All sales, stock and users are lost."""
    if not yes:
        click.confirm("WARN Every sale, stock movement and user will be erased. Continue?", abort=True)

    db.drop_all()
    db.create_all()
    click.echo("PASS Schema recreated. Run 'flask system init' next.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=ROLE_CHOICES, prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, email, name, password, role):
    """Create a new staff account."""
    try:
        user = create_user(
            username=username,
            email=email,
            name=name,
            password=password,
            role=role,
            rounds=current_app.config["BCRYPT_ROUNDS"],
        )
        db.session.commit()
    except (ValidationError, ConflictError) as e:
        db.session.rollback()
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role.value}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their role."""
    users = db.session.query(User).order_by(User.username).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Active':<8} {'Role'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {active_str:<8} {user.role.value}")

    click.echo("="*90 + "\n")


@click.group('perms')
def perms_group():
    """Permission matrix inspection and repair."""


def _flags(entry: dict) -> str:
    return "".join(
        letter if entry[f"can_{action}"] else "-"
        for letter, action in (("R", "read"), ("W", "write"), ("D", "delete"))
    )


@perms_group.command('list')
@click.option('--role', type=ROLE_CHOICES, help='Show a single role')
@with_appcontext
def list_perms(role):
    """Print the matrix as R/W/D flags per module."""
    matrix = PermissionMatrix(db.session)
    roles = [Role.parse(role)] if role else list(Role)

    click.echo(f"{'Module':<18} " + " ".join(f"{r.value:<15}" for r in roles))
    for module in MODULE_IDS:
        cells = [_flags(matrix.for_role(r)[module]) for r in roles]
        click.echo(f"{module:<18} " + " ".join(f"{c:<15}" for c in cells))


@perms_group.command('reset')
@with_appcontext
def reset_perms():
    """Replace the whole matrix with the default table."""
    count = PermissionMatrix(db.session).reset_defaults()
    db.session.commit()
    click.echo(f"PASS Permission matrix reset ({count} rows)")


@perms_group.command('check')
@click.argument('role', type=ROLE_CHOICES)
@click.argument('module', type=click.Choice(MODULE_IDS))
@click.argument('action', type=click.Choice([a.value for a in Action]))
@with_appcontext
def check_perm(role, module, action):
    """Check whether ROLE holds ACTION on MODULE."""
    allowed = PermissionMatrix(db.session).allows(role, module, action)
    if allowed:
        click.echo(f"PASS {role.upper()} can {action} {module}")
    else:
        click.echo(f"FAIL {role.upper()} cannot {action} {module}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
