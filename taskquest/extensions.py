"""Flask extension instances, bound to a concrete app inside ``create_app``."""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
