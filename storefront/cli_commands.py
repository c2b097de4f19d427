"""
Flask CLI commands for stock administration.

Commands:
- flask init-db: Create all tables
- flask stock-report: Print the stock movement report for a date window
- flask record-receipt: Receive stock for a product
"""

from datetime import datetime, timedelta

import click
from storefront.database import create_all, get_session
from storefront.exceptions import StorefrontError
from storefront.services.inventory_transaction_service import get_stock_movement_report, record_transaction
from storefront.models import TransactionType


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all database tables."""
        create_all()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('stock-report')
    @click.option('--start', default=None, help='Start date (YYYY-MM-DD), default 30 days ago')
    @click.option('--end', default=None, help='End date (YYYY-MM-DD), default today')
    def stock_report(start, end):
        """Print sold/received/adjusted/returned per product."""
        try:
            end_dt = datetime.strptime(end, '%Y-%m-%d').replace(hour=23, minute=59, second=59) if end else datetime.now()
            start_dt = datetime.strptime(start, '%Y-%m-%d') if start else end_dt - timedelta(days=30)
        except ValueError:
            raise click.BadParameter('Dates must use the YYYY-MM-DD format')

        rows = get_stock_movement_report(get_session(), start_dt, end_dt)
        if not rows:
            click.echo('No stock movements in this window.')
            return

        click.echo(f"{'Product':<30} {'Sold':>6} {'Recv':>6} {'Adj':>6} {'Ret':>6} {'Net':>6}")
        for row in rows:
            click.echo(
                f"{row['product_name'][:30]:<30} {row['sold']:>6} {row['received']:>6} "
                f"{row['adjusted']:>6} {row['returned']:>6} {row['net_change']:>+6}"
            )

    @app.cli.command('record-receipt')
    @click.argument('product_id', type=int)
    @click.argument('quantity', type=click.IntRange(min=1))
    @click.option('--notes', default=None, help='Free text stored with the movement')
    def record_receipt(product_id, quantity, notes):
        """Receive QUANTITY units of PRODUCT_ID into stock."""
        try:
            entry = record_transaction(
                get_session(), product_id, TransactionType.RECEIPT, quantity, notes=notes, actor_id='cli'
            )
        except StorefrontError as e:
            click.echo(click.style(f'Error: {e.message}', fg='red'))
            raise SystemExit(1)
        click.echo(click.style(
            f'Stock for product {product_id}: {entry.previous_stock} -> {entry.new_stock}', fg='green'
        ))
