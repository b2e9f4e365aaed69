#!/usr/bin/env python
"""
Management script for ChoreQuest.

This script provides command-line utilities for database migrations
and the engine's batch operations. Usage:

    flask --app manage db upgrade
    flask --app manage generate --family-id 3 --dry-run
    flask --app manage audit-ledger
"""

import json

import click

from chorequest.app import create_app

# Create Flask app
app = create_app()


@app.cli.command('generate')
@click.option('--family-id', type=int, default=None, help='Only process this family.')
@click.option('--dry-run', is_flag=True, help='Simulate the cycle and roll everything back.')
def generate_command(family_id, dry_run):
    """Run the assignment generation cycle now."""
    from chorequest.jobs.chore_generation import generate_chores

    report = generate_chores(family_id=family_id, dry_run=dry_run)
    click.echo(json.dumps(report.to_dict(), indent=2))

    if report.errors:
        raise SystemExit(1)


@app.cli.command('audit-ledger')
def audit_ledger_command():
    """Verify every wallet against its transactions, freezing mismatches."""
    from chorequest.jobs.ledger_audit import audit_wallet_balances

    discrepancies = audit_wallet_balances()
    if discrepancies:
        click.echo(json.dumps(discrepancies, indent=2))
        raise SystemExit(1)
    click.echo('All wallets verified')


# Make app context available for Flask CLI
if __name__ == '__main__':
    # This allows running: python manage.py
    app.run(debug=True)
