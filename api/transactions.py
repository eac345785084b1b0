"""
Transaction routes — CRUD, summary, category breakdown and export.

Route prefix: /api/transactions
Every route requires an authenticated user and only sees that user's rows.
"""

from __future__ import annotations

import io
import logging
import uuid
from datetime import date, datetime, time, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional

import pandas as pd
from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import db_session, get_current_user_id
from auth.errors import ValidationError
from database.transactions import (
    breakdown_by_category,
    create_transaction,
    delete_transaction,
    get_transaction,
    list_transactions,
    summarize_by_type,
    update_transaction,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["transactions"])

TransactionType = Literal["income", "expense"]
TransactionStatus = Literal["pending", "completed", "failed"]
SortField = Literal["date", "amount", "category", "type", "status", "created_at"]

EXPORT_COLUMNS = ["date", "type", "category", "amount", "status", "description"]


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are taken to be UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


# ── Schemas ────────────────────────────────────────────────────────────


class TransactionCreate(BaseModel):
    amount: float = Field(..., gt=0)
    category: str = Field(..., min_length=1, max_length=64)
    type: TransactionType
    status: TransactionStatus = "completed"
    date: Optional[UtcDatetime] = None
    description: Optional[str] = Field(None, max_length=1000)


class TransactionUpdate(BaseModel):
    amount: Optional[float] = Field(None, gt=0)
    category: Optional[str] = Field(None, min_length=1, max_length=64)
    type: Optional[TransactionType] = None
    status: Optional[TransactionStatus] = None
    date: Optional[UtcDatetime] = None
    description: Optional[str] = Field(None, max_length=1000)


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    transaction_id: uuid.UUID
    amount: float
    category: str
    type: str
    status: str
    date: datetime
    description: Optional[str] = None
    created_at: Optional[datetime] = None


class TransactionFilters(BaseModel):
    search: Optional[str] = None
    category: Optional[str] = None
    type: Optional[TransactionType] = None
    status: Optional[TransactionStatus] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def as_query_kwargs(self) -> Dict[str, Any]:
        """Translate to ``database.transactions`` keyword filters (end date inclusive)."""
        return {
            "search": self.search,
            "category": self.category,
            "type_": self.type,
            "status": self.status,
            "start_date": (
                datetime.combine(self.start_date, time.min, tzinfo=timezone.utc)
                if self.start_date else None
            ),
            "end_date": (
                datetime.combine(self.end_date, time.max, tzinfo=timezone.utc)
                if self.end_date else None
            ),
        }


def _filters(
    search: Optional[str] = None,
    category: Optional[str] = None,
    type: Optional[TransactionType] = None,
    status: Optional[TransactionStatus] = None,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
) -> TransactionFilters:
    if start_date and end_date and start_date > end_date:
        raise ValidationError("startDate must not be after endDate.")
    return TransactionFilters(
        search=search,
        category=category,
        type=type,
        status=status,
        start_date=start_date,
        end_date=end_date,
    )


def _serialize(txn) -> Dict[str, Any]:
    return TransactionOut.model_validate(txn).model_dump(mode="json")


# ── Endpoints ──────────────────────────────────────────────────────────


@router.post("", status_code=status.HTTP_201_CREATED)
async def create(
    req: TransactionCreate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Record a new income or expense."""
    txn = await create_transaction(session, user_id, **req.model_dump())
    await session.commit()
    logger.info("Created %s transaction %s for %s", txn.type, txn.transaction_id, user_id)
    return {"message": "Transaction created", "transaction": _serialize(txn)}


@router.get("")
async def list_all(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: SortField = Query("date", alias="sortBy"),
    order: Literal["asc", "desc"] = "desc",
    filters: TransactionFilters = Depends(_filters),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Filtered, sorted and paginated listing."""
    rows, total = await list_transactions(
        session,
        user_id,
        page=page,
        limit=limit,
        sort_by=sort_by,
        order=order,
        **filters.as_query_kwargs(),
    )
    return {"data": [_serialize(txn) for txn in rows], "total": total}


@router.get("/summary")
async def summary(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Income vs expense totals and the resulting balance."""
    totals = await summarize_by_type(session, user_id)
    income = totals.get("income", 0.0)
    expense = totals.get("expense", 0.0)
    return {
        "summary": [{"type": t, "total": v} for t, v in sorted(totals.items())],
        "income": income,
        "expense": expense,
        "balance": round(income - expense, 2),
    }


@router.get("/breakdown")
async def breakdown(
    type: Optional[TransactionType] = None,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, List[Dict[str, Any]]]:
    """Totals grouped by category."""
    return {"breakdown": await breakdown_by_category(session, user_id, type_=type)}


@router.get("/export")
async def export(
    format: Literal["csv", "json"] = "csv",
    filters: TransactionFilters = Depends(_filters),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Response:
    """Download every matching transaction as CSV or JSON."""
    rows, total = await list_transactions(
        session, user_id, limit=None, sort_by="date", order="asc",
        **filters.as_query_kwargs(),
    )
    frame = pd.DataFrame(
        [{col: getattr(txn, col) for col in EXPORT_COLUMNS} for txn in rows],
        columns=EXPORT_COLUMNS,
    )
    logger.info("Exporting %d transactions for %s as %s", total, user_id, format)

    if format == "json":
        body = frame.to_json(orient="records", date_format="iso")
        media_type = "application/json"
    else:
        buffer = io.StringIO()
        frame.to_csv(buffer, index=False)
        body = buffer.getvalue()
        media_type = "text/csv"

    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="transactions.{format}"'},
    )


@router.get("/{transaction_id}")
async def get_one(
    transaction_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    txn = await get_transaction(session, user_id, transaction_id)
    return {"transaction": _serialize(txn)}


@router.put("/{transaction_id}")
async def update(
    transaction_id: uuid.UUID,
    req: TransactionUpdate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Partially update one of the user's transactions."""
    updates = req.model_dump(exclude_unset=True)
    if not updates:
        raise ValidationError("No update fields provided.")
    cleared = sorted(name for name, value in updates.items() if value is None and name != "description")
    if cleared:
        raise ValidationError(f"{cleared[0]} cannot be empty.")

    txn = await update_transaction(session, user_id, transaction_id, **updates)
    await session.commit()
    return {"message": "Transaction updated", "transaction": _serialize(txn)}


@router.delete("/{transaction_id}")
async def remove(
    transaction_id: uuid.UUID,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    await delete_transaction(session, user_id, transaction_id)
    await session.commit()
    logger.info("Deleted transaction %s for %s", transaction_id, user_id)
    return {"message": "Transaction deleted"}
