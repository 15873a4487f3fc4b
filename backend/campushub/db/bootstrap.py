from __future__ import annotations

import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from campushub.db.base import Base
from campushub.db.session import engine as default_engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "users": {"id", "email", "role", "is_active"},
    "resources": {
        "id",
        "name",
        "type",
        "availability",
        "reservation_requires_approval",
        "allowed_roles",
    },
    "reservations": {
        "id",
        "resource_id",
        "user_id",
        "start_time",
        "end_time",
        "status",
        "recurrence_pattern",
    },
    "notifications": {"id", "user_id", "notification_type", "priority", "is_read"},
}


def find_schema_gaps(bind: Engine | None = None) -> tuple[list[str], dict[str, list[str]]]:
    target = bind or default_engine
    missing_tables: list[str] = []
    missing_columns: dict[str, list[str]] = {}
    with target.connect() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        for table_name, columns in REQUIRED_COLUMNS.items():
            if table_name not in table_names:
                missing_tables.append(table_name)
                continue
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            missing = sorted(columns - existing)
            if missing:
                missing_columns[table_name] = missing
    return missing_tables, missing_columns


def ensure_runtime_schema(*, auto_create: bool, bind: Engine | None = None) -> None:
    target = bind or default_engine
    import campushub.models  # noqa: F401

    if auto_create:
        Base.metadata.create_all(bind=target)
        logger.info("Database schema created or already present")
        return

    try:
        missing_tables, missing_columns = find_schema_gaps(target)
    except Exception:  # pragma: no cover - environment dependent
        logger.warning("Unable to inspect database schema at startup", exc_info=True)
        return
    if missing_tables or missing_columns:
        logger.warning(
            "Database schema is behind the models (missing tables: %s, missing columns: %s); run `alembic upgrade head`",
            missing_tables,
            missing_columns,
        )
