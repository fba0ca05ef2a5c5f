"""
G3 Tornado
Shared Flask-SQLAlchemy handle and company-affiliation constants.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Affiliated companies. Each key maps to an ``is_<key>`` flag on Project and an
# ``is_<key>_employee`` flag on Contact.
COMPANIES = ("up", "bp", "upfit", "bpas")
