"""
Transaction queries — every function is scoped to the owning ``user_id``.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import Select, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from auth.errors import NotFoundError
from database.models import Transaction

logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = {
    "date": Transaction.date,
    "amount": Transaction.amount,
    "category": Transaction.category,
    "type": Transaction.type,
    "status": Transaction.status,
    "created_at": Transaction.created_at,
}

_MUTABLE_FIELDS = frozenset({"amount", "category", "type", "status", "date", "description"})


def _to_uuid(value: str | uuid.UUID) -> uuid.UUID:
    return uuid.UUID(value) if isinstance(value, str) else value


def _filtered(
    stmt: Select,
    user_id: str | uuid.UUID,
    *,
    category: Optional[str] = None,
    type_: Optional[str] = None,
    status: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    search: Optional[str] = None,
) -> Select:
    stmt = stmt.where(Transaction.user_id == _to_uuid(user_id))
    if category:
        stmt = stmt.where(Transaction.category == category)
    if type_:
        stmt = stmt.where(Transaction.type == type_)
    if status:
        stmt = stmt.where(Transaction.status == status)
    if start_date is not None:
        stmt = stmt.where(Transaction.date >= start_date)
    if end_date is not None:
        stmt = stmt.where(Transaction.date <= end_date)
    if search:
        stmt = stmt.where(
            or_(
                Transaction.category.icontains(search, autoescape=True),
                Transaction.description.icontains(search, autoescape=True),
            )
        )
    return stmt


async def create_transaction(
    session: AsyncSession,
    user_id: str | uuid.UUID,
    **fields: Any,
) -> Transaction:
    if fields.get("date") is None:
        fields.pop("date", None)
    txn = Transaction(transaction_id=uuid.uuid4(), user_id=_to_uuid(user_id), **fields)
    session.add(txn)
    await session.flush()
    return txn


async def get_transaction(
    session: AsyncSession,
    user_id: str | uuid.UUID,
    transaction_id: str | uuid.UUID,
) -> Transaction:
    """Return the user's transaction; someone else's is reported as missing."""
    result = await session.execute(
        select(Transaction).where(
            Transaction.transaction_id == _to_uuid(transaction_id),
            Transaction.user_id == _to_uuid(user_id),
        )
    )
    txn = result.scalar_one_or_none()
    if txn is None:
        raise NotFoundError("Transaction not found.")
    return txn


async def list_transactions(
    session: AsyncSession,
    user_id: str | uuid.UUID,
    *,
    page: int = 1,
    limit: Optional[int] = 10,
    sort_by: str = "date",
    order: str = "desc",
    **filters: Any,
) -> Tuple[List[Transaction], int]:
    """
    Return one page of the user's transactions plus the total match count.

    ``limit=None`` returns every match (used by export).
    """
    column = SORTABLE_COLUMNS.get(sort_by, Transaction.date)
    ordering = column.asc() if order == "asc" else column.desc()

    stmt = _filtered(select(Transaction), user_id, **filters).order_by(
        ordering, Transaction.transaction_id
    )
    if limit is not None:
        stmt = stmt.offset((page - 1) * limit).limit(limit)
    rows = list((await session.execute(stmt)).scalars().all())

    count_stmt = _filtered(select(func.count(Transaction.transaction_id)), user_id, **filters)
    total = (await session.execute(count_stmt)).scalar_one()
    return rows, total


async def update_transaction(
    session: AsyncSession,
    user_id: str | uuid.UUID,
    transaction_id: str | uuid.UUID,
    **fields: Any,
) -> Transaction:
    unknown = set(fields) - _MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

    txn = await get_transaction(session, user_id, transaction_id)
    for name, value in fields.items():
        setattr(txn, name, value)
    await session.flush()
    return txn


async def delete_transaction(
    session: AsyncSession,
    user_id: str | uuid.UUID,
    transaction_id: str | uuid.UUID,
) -> None:
    result = await session.execute(
        delete(Transaction).where(
            Transaction.transaction_id == _to_uuid(transaction_id),
            Transaction.user_id == _to_uuid(user_id),
        )
    )
    if result.rowcount == 0:
        raise NotFoundError("Transaction not found.")


async def summarize_by_type(session: AsyncSession, user_id: str | uuid.UUID) -> Dict[str, float]:
    """Total amount per transaction type, e.g. ``{"income": 1200.0, "expense": 300.5}``."""
    stmt = (
        select(Transaction.type, func.sum(Transaction.amount))
        .where(Transaction.user_id == _to_uuid(user_id))
        .group_by(Transaction.type)
    )
    rows = (await session.execute(stmt)).all()
    return {txn_type: round(float(total or 0), 2) for txn_type, total in rows}


async def breakdown_by_category(
    session: AsyncSession,
    user_id: str | uuid.UUID,
    type_: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Total amount per category, largest first."""
    total = func.sum(Transaction.amount).label("total")
    stmt = _filtered(select(Transaction.category, total), user_id, type_=type_)
    stmt = stmt.group_by(Transaction.category).order_by(total.desc(), Transaction.category)
    rows = (await session.execute(stmt)).all()
    return [
        {"category": category, "total": round(float(amount or 0), 2)}
        for category, amount in rows
    ]
