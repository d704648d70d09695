# app/routers/stats.py
"""Daily in/out statistics by role."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from app.schemas.access_event import TodayStatsOut
from app.services.ledger import AccessLedger, get_ledger

router = APIRouter()


@router.get("/stats/today", response_model=TodayStatsOut, summary="Today's entry/exit counts")
def get_today_stats(ledger: AccessLedger = Depends(get_ledger)):
    """
    total_entries counts every event today; the per-role counts reflect each
    person's latest event of the day.
    """
    stats = ledger.get_today_stats()
    return TodayStatsOut(date=str(ledger.clock().date()), **stats.model_dump())


@router.get("/stats/daily", response_model=TodayStatsOut, summary="Entry/exit counts for a given day")
def get_daily_stats(target_date: Optional[date] = None, ledger: AccessLedger = Depends(get_ledger)):
    target = target_date or ledger.clock().date()
    stats = ledger.get_day_stats(target)
    return TodayStatsOut(date=str(target), **stats.model_dump())
