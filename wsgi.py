"""
WSGI and Flask-Migrate entry point.

Usage:
    flask db upgrade
    flask issue-token admin@example.com
    gunicorn wsgi:app
"""

from g3tornado import create_app

app = create_app()
