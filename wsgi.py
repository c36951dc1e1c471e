"""WSGI entry point for the TaskQuest API."""

import os

from taskquest.app import create_app

app = create_app(os.getenv("FLASK_ENV", "production"))
