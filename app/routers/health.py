# app/routers/health.py
"""
System health check endpoint.
Returns status of backend + database + live subscriptions.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from app.database import get_db
from app.services.ledger import AccessLedger, get_ledger
from datetime import datetime

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db), ledger: AccessLedger = Depends(get_ledger)):
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "read_error_policy": ledger.store.on_read_error,
        "live_subscriptions": ledger.store.subscription_count,
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    return result
