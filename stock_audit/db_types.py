"""Database-agnostic type definitions for SQLAlchemy models.

Each type here works on both SQLite and PostgreSQL.
"""
from sqlalchemy import Numeric, Uuid

# Native UUID on PostgreSQL, CHAR(32) elsewhere
UUIDType = Uuid

# Monetary amounts (adjustment values, unit costs)
MoneyType = Numeric(14, 2)
