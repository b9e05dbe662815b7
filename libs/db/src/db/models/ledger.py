from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# Rules: sl_alias_rules
# ---------------------------


class SlAliasRule(Base):
    __tablename__ = "sl_alias_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Evaluation order; first matching alias wins.
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    pattern: Mapped[str] = mapped_column(Text, nullable=False)
    label: Mapped[str] = mapped_column(Text, nullable=False)
    mode: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "mode IN ('contains','startsWith','regex')", name="ck_sl_alias_rules_mode"
        ),
    )


# ---------------------------
# Rules: sl_category_rules
# ---------------------------


class SlCategoryRule(Base):
    __tablename__ = "sl_category_rules"

    # ``alias:<label>`` or ``tok:<bigram|unigram>``
    key: Mapped[str] = mapped_column(String, primary_key=True)
    category: Mapped[str] = mapped_column(String, nullable=False)
    source: Mapped[str] = mapped_column(String, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "source IN ('alias','merchant','token')", name="ck_sl_category_rules_source"
        ),
    )


# ---------------------------
# Overrides: sl_category_overrides
# ---------------------------


class SlCategoryOverride(Base):
    __tablename__ = "sl_category_overrides"

    # ``<date>|<description>|<amount>``
    key: Mapped[str] = mapped_column(Text, primary_key=True)
    category: Mapped[str] = mapped_column(String, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------
# Snapshots: sl_statements
# ---------------------------


class SlStatement(Base):
    __tablename__ = "sl_statements"

    # ``YYYY-MM``
    id: Mapped[str] = mapped_column(String(7), primary_key=True)
    label: Mapped[str] = mapped_column(String, nullable=False)
    stmt_year: Mapped[int] = mapped_column(Integer, nullable=False)
    stmt_month: Mapped[int] = mapped_column(Integer, nullable=False)
    pages_raw: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    # Declared inputs (opening balance, total deposits/withdrawals) as strings.
    inputs: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    rows: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    parser_version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("stmt_month BETWEEN 1 AND 12", name="ck_sl_statements_month"),
    )
