from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from campushub.db import bootstrap


def _memory_engine():
    return create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


def test_schema_gaps_reported_for_empty_database():
    engine = _memory_engine()
    missing_tables, missing_columns = bootstrap.find_schema_gaps(engine)
    assert set(missing_tables) == {"users", "resources", "reservations", "notifications"}
    assert missing_columns == {}


def test_auto_create_builds_every_table():
    engine = _memory_engine()
    bootstrap.ensure_runtime_schema(auto_create=True, bind=engine)
    assert bootstrap.find_schema_gaps(engine) == ([], {})


def test_missing_columns_are_logged_not_raised(caplog):
    engine = _memory_engine()
    bootstrap.ensure_runtime_schema(auto_create=True, bind=engine)
    with engine.begin() as connection:
        connection.execute(text("DROP TABLE notifications"))
        connection.execute(text("CREATE TABLE notifications (id VARCHAR(36) PRIMARY KEY, user_id VARCHAR(36))"))

    bootstrap.ensure_runtime_schema(auto_create=False, bind=engine)

    missing_tables, missing_columns = bootstrap.find_schema_gaps(engine)
    assert missing_tables == []
    assert missing_columns == {"notifications": ["is_read", "notification_type", "priority"]}
    assert "alembic upgrade head" in caplog.text
