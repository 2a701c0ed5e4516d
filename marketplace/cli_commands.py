"""
Flask CLI commands for platform bootstrap.

Commands:
- flask init-db: Create all tables
- flask create-super-admin: Create a platform super-admin
- flask seed-categories: Load the default category trees
"""

import click

from marketplace.actor import Actor
from marketplace.database import create_schema, get_session
from marketplace.exceptions import MarketplaceError
from marketplace.models import User, UserRole
from marketplace.seed_data import PRODUCT_CATEGORIES, SERVICE_CATEGORIES
from marketplace.services import admin_service, category_service


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create database tables."""
        create_schema()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('create-super-admin')
    @click.option('--email', prompt=True, help='Super-admin email address')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Super-admin password')
    @click.option('--first-name', default=None, help='First name')
    @click.option('--last-name', default=None, help='Last name')
    def create_super_admin(email, password, first_name, last_name):
        """Create a new super-admin for the backoffice."""
        session = get_session()
        try:
            user = admin_service.create_super_admin(
                session, email, password, first_name=first_name, last_name=last_name
            )
        except MarketplaceError as e:
            click.echo(click.style(f'Error: {e.message}', fg='red'))
            raise SystemExit(1)

        click.echo(click.style('\nSuper-admin created successfully!', fg='green', bold=True))
        click.echo(f'   Email: {user.email}')
        click.echo(f'   ID: {user.id}')

    @app.cli.command('seed-categories')
    def seed_categories():
        """Load the default product and service category trees (idempotent)."""
        session = get_session()
        admin = session.query(User).filter(
            User.role == UserRole.SUPER_ADMIN.value
        ).order_by(User.created_at.asc()).first()
        if admin is None:
            click.echo(click.style('Error: create a super-admin first (flask create-super-admin).', fg='red'))
            raise SystemExit(1)

        actor = Actor.from_user(admin)
        for kind, tree in ((category_service.PRODUCT_KIND, PRODUCT_CATEGORIES),
                           (category_service.SERVICE_KIND, SERVICE_CATEGORIES)):
            result = category_service.seed_categories(session, actor, tree, kind=kind)
            click.echo(f"{kind} categories: {result['created']} created, {result['skipped']} skipped")
