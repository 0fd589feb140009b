# app.py

import logging

import click
from flask import Flask, current_app

from config import Config, database_path
from errors import StoreError, user_message
from models import db
from store import LocalStore

STORE_KEY = "forkast_store"


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.logger.setLevel(app.config["LOG_LEVEL"])
    app.logger.info("Connecting to DB: %s", app.config["SQLALCHEMY_DATABASE_URI"])

    db.init_app(app)
    store = LocalStore(db.session, bcrypt_rounds=app.config["BCRYPT_ROUNDS"])
    app.extensions[STORE_KEY] = store

    with app.app_context():
        store.initialize()

    register_commands(app)
    return app


def get_store():
    return current_app.extensions[STORE_KEY]


# ------------------ CLI COMMANDS ------------------
def register_commands(app):

    @app.cli.command("init-db")
    def init_db():
        """Create the tables if they are missing."""
        get_store().initialize()
        click.echo("Database initialized")

    @app.cli.command("reset-db")
    def reset_db():
        """Delete the database file. There is no undo."""
        path = database_path(str(db.engine.url))
        if path is None:
            click.echo("Database is not a SQLite file, nothing to delete")
            return

        db.session.remove()
        db.engine.dispose()
        if path.exists():
            path.unlink()
            app.logger.warning("Deleted database file %s", path)
            click.echo(f"Database file deleted: {path}")
        else:
            click.echo(f"Database file does not exist: {path}")

    @app.cli.command("publish-menu")
    @click.argument("names", nargs=-1)
    def publish_menu(names):
        """Publish next week's five meals."""
        try:
            items = get_store().add_week_menu(names)
        except StoreError as e:
            raise click.ClickException(user_message(e)) from e
        click.echo(f"Menu for week of {items[0].week_start_date.isoformat()}:")
        for item in items:
            click.echo(f"  {item.name}")

    @app.cli.command("weekly-stats")
    def weekly_stats():
        """Show the best and worst meal of the last seven days."""
        stats = get_store().get_weekly_stats()
        click.echo(f"Best meal:  {stats.best_meal.name} ({stats.best_meal.rating:.2f})")
        click.echo(f"Worst meal: {stats.worst_meal.name} ({stats.worst_meal.rating:.2f})")
