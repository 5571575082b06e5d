# Overview: Flask CLI command groups for database bootstrap and EMI follow-up.

# backend/mobilepos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` for migrations).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# EMI follow-up:
# - python -m flask emi due --within-days 7
#   List EMI-Active invoices whose next installment falls within the window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import emi_service
from .time_utils import to_utc_z


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db_command():
    """Create missing tables."""
    db.create_all()
    click.echo("Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db_command(yes: bool):
    """Drop and recreate all tables (DEV/TEST only)."""
    if not yes:
        click.confirm("This deletes ALL data. Continue?", abort=True)
    db.drop_all()
    db.create_all()
    click.echo("Database reset complete.")


@click.group('emi')
def emi_group():
    """EMI plan follow-up commands."""


@emi_group.command('due')
@click.option('--within-days', type=int, default=7, show_default=True, help='Look-ahead window in days')
@with_appcontext
def emi_due_command(within_days: int):
    """List EMI plans with an installment due soon."""
    plans = emi_service.plans_due_within(within_days)
    if not plans:
        click.echo("No EMI installments due.")
        return
    for plan in plans:
        click.echo(
            f"{plan['invoice_number']}  {plan['customer']} ({plan['mobile']})  "
            f"due {to_utc_z(plan['next_due_date'])}  "
            f"installment {plan['monthly_installment']}  remaining {plan['remaining']}"
        )


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(emi_group)
