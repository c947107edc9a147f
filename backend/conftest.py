from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_WRITE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ.setdefault("NOTIFICATIONS_QUEUE_SIZE", "100")

from plantops.database import Base, build_engine  # noqa: E402
from plantops.apps.accounts import models as account_models  # noqa: E402
from plantops.apps.warehouses import models as warehouse_models  # noqa: E402
from plantops.apps.work import models as work_models  # noqa: E402
from plantops.apps.inventory import models as inventory_models  # noqa: E402
from plantops.apps.notifications import models as notification_models  # noqa: E402
from plantops.apps.notifications import dispatcher as notification_dispatcher  # noqa: E402
from plantops.apps.notifications.notifier import DatabaseNotifier, NoopNotifier  # noqa: E402

TEST_TABLES = [
    account_models.User.__table__,
    warehouse_models.Plot.__table__,
    work_models.WorkOrder.__table__,
    inventory_models.InventoryItem.__table__,
    inventory_models.StockLot.__table__,
    inventory_models.StockRequest.__table__,
    inventory_models.StockMovement.__table__,
    inventory_models.IdempotencyKey.__table__,
    notification_models.Notification.__table__,
]


def create_test_engine(url: str = "sqlite+pysqlite://", **overrides):
    engine = build_engine(url, **overrides)
    Base.metadata.create_all(bind=engine, tables=TEST_TABLES)
    return engine


@pytest.fixture()
def engine():
    # One shared connection so sessions opened by the dispatcher or the
    # TestClient worker thread see the same in-memory database.
    engine = create_test_engine(poolclass=StaticPool)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def dispatcher(request):
    """Fresh notification dispatcher per test; events are delivered only on drain()."""
    if "session_factory" in request.fixturenames:
        factory = request.getfixturevalue("session_factory")
        instance = notification_dispatcher.NotificationDispatcher(
            factory,
            notifier=DatabaseNotifier(factory),
        )
    else:
        instance = notification_dispatcher.NotificationDispatcher(sessionmaker(), notifier=NoopNotifier())
    notification_dispatcher.set_dispatcher(instance)
    try:
        yield instance
    finally:
        notification_dispatcher.set_dispatcher(None)
