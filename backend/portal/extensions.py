# Overview: Flask extension instances for database and migrations, plus app-scoped service lookups.

from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()


def get_storage():
    """Storage backend selected for the running app."""
    return current_app.extensions["portal.storage"]


def get_freshbooks():
    """Freshbooks client constructed at startup for the running app."""
    return current_app.extensions["portal.freshbooks"]
