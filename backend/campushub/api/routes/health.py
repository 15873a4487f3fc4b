from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from campushub.db.bootstrap import find_schema_gaps
from campushub.db.session import engine

router = APIRouter()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _database_status() -> dict:
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        missing_tables, missing_columns = find_schema_gaps(engine)
    except Exception as exc:  # pragma: no cover - environment dependent
        return {"ok": False, "schema_ok": False, "missing_tables": [], "missing_columns": {}, "error": str(exc)}
    return {
        "ok": True,
        "schema_ok": not missing_tables and not missing_columns,
        "missing_tables": missing_tables,
        "missing_columns": missing_columns,
        "error": None,
    }


def _sweep_status(request: Request) -> dict:
    reconciler = getattr(request.app.state, "reservation_reconciler", None)
    if reconciler is None:
        return {"running": False, "interval_seconds": None, "last_summary": None}
    return {
        "running": reconciler.running,
        "interval_seconds": reconciler.interval_seconds,
        "last_summary": reconciler.last_summary,
    }


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/health/live")
def health_live() -> dict:
    return {"status": "ok", "timestamp": _now_iso()}


@router.get("/health/ready")
def health_ready(request: Request) -> JSONResponse:
    database = _database_status()
    ready = database["ok"] and database["schema_ok"]
    payload = {
        "status": "ok" if ready else "degraded",
        "timestamp": _now_iso(),
        "database": database,
        "reservation_sweep": _sweep_status(request),
    }
    return JSONResponse(status_code=200 if ready else 503, content=payload)
