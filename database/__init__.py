"""
Database Package Initialization.

============================================================
DATABASE PERSISTENCE LAYER
============================================================

Engine, sessions and transactions shared by the SQL-backed
baseline store and assessment repository. ORM models live next
to the code that owns them (risk_analysis.models,
assessment.models).

============================================================
"""

from .engine import (
    Base,
    DEFAULT_DATABASE_URL,
    DatabasePersistenceError,
    create_all_tables,
    create_database_engine,
    get_database_url,
    get_engine,
    get_session_factory,
    transaction_scope,
)


__all__ = [
    "Base",
    "DEFAULT_DATABASE_URL",
    "DatabasePersistenceError",
    "create_all_tables",
    "create_database_engine",
    "get_database_url",
    "get_engine",
    "get_session_factory",
    "transaction_scope",
]
