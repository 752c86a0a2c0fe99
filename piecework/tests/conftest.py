import os
_default_test_secret = "test-jwt-secret-for-pytest-only-0000000000000000"
if len(os.environ.get("JWT_SECRET", "")) < 32:
    os.environ["JWT_SECRET"] = _default_test_secret
os.environ.setdefault("ENV", "test")

import tempfile
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url

_default_test_database = Path(tempfile.gettempdir()) / "piecework_test.db"
TEST_DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{_default_test_database}")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

from piecework import database  # noqa: E402
from piecework import models  # noqa: E402,F401
from piecework.models.contractor import Contractor  # noqa: E402
from piecework.models.operation import Operation  # noqa: E402

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _ensure_database_exists(database_url: str) -> None:
    url = make_url(database_url)

    if url.drivername.startswith("sqlite"):
        # fresh file per session; alembic rebuilds it below
        if url.database and os.path.exists(url.database):
            os.remove(url.database)
        return

    if not url.drivername.startswith("postgresql"):
        return

    db_name = url.database
    admin_url = url.set(database="postgres")
    admin_engine = create_engine(admin_url, isolation_level="AUTOCOMMIT")

    try:
        with admin_engine.connect() as conn:
            exists = conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :name"),
                {"name": db_name},
            ).scalar()
            if not exists:
                safe_db_name = db_name.replace('"', '""')
                conn.execute(text(f'CREATE DATABASE "{safe_db_name}"'))
    finally:
        admin_engine.dispose()


def _empty_all_tables() -> None:
    with database.engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            table_names = [t.name for t in database.Base.metadata.sorted_tables]
            quoted = ", ".join([f'"public"."{name}"' for name in table_names])
            conn.execute(text(f"TRUNCATE TABLE {quoted} RESTART IDENTITY CASCADE"))
            return

        for table in reversed(database.Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(scope="session", autouse=True)
def _prepare_test_database() -> None:
    # drop pooled connections to a file about to be replaced
    database.engine.dispose()
    _ensure_database_exists(TEST_DATABASE_URL)

    config = Config(str(PROJECT_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    config.set_main_option("sqlalchemy.url", TEST_DATABASE_URL)
    config.attributes["configure_logger"] = False
    command.upgrade(config, "head")

    database.configure_database()


@pytest.fixture(scope="function", autouse=True)
def _truncate_tables_between_tests():
    _empty_all_tables()
    yield
    _empty_all_tables()


@pytest.fixture
def operation_factory():
    def _create(operation_id: str, name: str, rate_type: str = "1:1", rate_per_unit=0):
        db = database.SessionLocal()
        try:
            row = Operation(id=operation_id, name=name, rate_type=rate_type, rate_per_unit=rate_per_unit)
            db.add(row)
            db.commit()
            return row
        finally:
            db.close()

    return _create


@pytest.fixture
def contractor_factory():
    def _create(contractor_id: str, name: str):
        db = database.SessionLocal()
        try:
            row = Contractor(contractor_id=contractor_id, name=name)
            db.add(row)
            db.commit()
            return row
        finally:
            db.close()

    return _create
