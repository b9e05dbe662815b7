"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the rule, override and statement-snapshot tables used by
``statement_ledger``.
"""

from .ledger import Base, SlAliasRule, SlCategoryOverride, SlCategoryRule, SlStatement

__all__ = [
    "Base",
    "SlAliasRule",
    "SlCategoryRule",
    "SlCategoryOverride",
    "SlStatement",
]
