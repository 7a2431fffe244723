"""
Models Package

This file ensures all SQLAlchemy models are imported and registered,
so Base.metadata.create_all() sees every table.
"""

from models.base import Base
from models.document import Document
