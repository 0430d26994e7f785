import click
from flask import current_app
from flask.cli import with_appcontext

from crudkit.database import check_connection, create_tables, drop_tables


@click.command("init-db")
@click.option("--drop/--no-drop", default=False, help="Drop every table before creating them again")
@with_appcontext
def init_db_command(drop: bool):
    """Create the tables for every registered model.

    Safe to run multiple times; existing tables are left untouched unless
    ``--drop`` is given.
    """
    if drop:
        drop_tables()
        click.echo("✔ Dropped existing tables")
    create_tables()
    current_app.logger.info("Database initialised (drop=%s)", drop)
    click.echo("✔ Database tables created")


@click.command("check-db")
@with_appcontext
def check_db_command():
    """Verify the configured database answers a trivial query."""
    if check_connection():
        click.echo("✔ Database connection OK")
        return
    click.echo("⚠ Database connection failed", err=True)
    raise SystemExit(1)
