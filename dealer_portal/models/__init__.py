"""
Dealer Portal
SQLAlchemy database instance shared by every model module.

Usage:
    from dealer_portal.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
