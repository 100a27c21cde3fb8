"""
Flask CLI commands for store setup.

Commands:
- flask init-db: Create the database tables
- flask create-coupon: Create a discount coupon
"""

import click
from restopos.database import create_all, get_session
from restopos.exceptions import PosError
from restopos.services.coupon_service import CouponService


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables that do not exist yet."""
        create_all()
        click.echo(click.style('✅ Database tables created', fg='green'))

    @app.cli.command('create-coupon')
    @click.option('--code', prompt=True, help='Coupon code (case-sensitive)')
    @click.option('--type', 'discount_type', type=click.Choice(['percentage', 'fixed']), default='percentage',
                  show_default=True, help='Discount type')
    @click.option('--value', 'discount_value', type=float, prompt=True,
                  help='Percentage (0-100) or fixed amount in minor units')
    @click.option('--expires', 'expiration_date', prompt=True, help='Expiration date (ISO 8601)')
    @click.option('--starts', 'start_date', default=None, help='Start date (ISO 8601)')
    @click.option('--max-uses', 'max_uses', type=int, default=None, help='Maximum number of uses')
    def create_coupon(code, discount_type, discount_value, expiration_date, start_date, max_uses):
        """Create a coupon from the command line."""
        db_session = get_session()
        try:
            coupon = CouponService(db_session).create_coupon({
                'code': code,
                'discount_type': discount_type,
                'discount_value': discount_value,
                'expiration_date': expiration_date,
                'start_date': start_date,
                'max_uses': max_uses,
            })
        except PosError as e:
            db_session.rollback()
            click.echo(click.style(f'❌ {e.message}', fg='red'))
            return

        click.echo(click.style('\n✅ Coupon created', fg='green', bold=True))
        click.echo(f'   Code: {coupon.code}')
        click.echo(f'   ID: {coupon.id}')
