"""Database-agnostic type definitions for SQLAlchemy models.

This module provides type definitions that work with both SQLite and PostgreSQL.
"""
from sqlalchemy import Numeric, Uuid

# Native UUID on PostgreSQL, CHAR(32) on SQLite
UUIDType = Uuid

# Whole currency units (Rupiah has no fractional unit in practice)
MoneyType = Numeric(14, 2)

# Liters with 0.01 precision
VolumeType = Numeric(10, 2)
