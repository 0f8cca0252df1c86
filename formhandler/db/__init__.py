"""
FormHandler Database Checks
===========================

Existence checks against a database connection.
"""

from formhandler.db.checker import ConnectionDBChecker, DBChecker, sql_identifier

__all__ = [
    "DBChecker",
    "ConnectionDBChecker",
    "sql_identifier",
]
