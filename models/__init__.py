"""SQLAlchemy models for the vocabulary drill engine"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
