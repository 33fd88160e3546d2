import sys
from pathlib import Path
import os
from datetime import datetime, timedelta

root = Path(__file__).resolve().parents[1]
if str(root) not in sys.path:
    sys.path.insert(0, str(root))

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from needflow.db.base import Base
from needflow.models.approval_chain import ApprovalChainRule
from needflow.models.enums import RequestStatus, StepStatus
from needflow.models.user import User
from needflow.services.memory_store import InMemoryRequestStore


class FakeClock:
    def __init__(self, start=datetime(2026, 3, 2, 9, 0, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class RecordingDispatcher:
    def __init__(self):
        self.sent = []

    def notify(self, user_id, request_id, message):
        self.sent.append((user_id, request_id, message))

    def for_user(self, user_id):
        return [m for uid, _, m in self.sent if uid == user_id]


def assert_current_approver_consistent(store, request_id):
    req = store.get_request(request_id)
    steps = store.get_steps(request_id)
    orders = [s.order for s in steps]
    assert orders == sorted(set(orders))
    if req.status == RequestStatus.PENDING_APPROVAL:
        pending = [s for s in steps if s.status == StepStatus.PENDING]
        assert req.current_approver == min(pending, key=lambda s: s.order).user_id
    else:
        assert req.current_approver is None


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture()
def people():
    return {
        "requester": User(id=10, username="amina", full_name="Amina Diallo", department="Finance", role="initiator", is_active=True),
        "validator": User(id=20, username="koffi", full_name="Koffi Mensah", department="Finance", role="validator", is_active=True),
        "approver": User(id=30, username="sara", full_name="Sara Benali", department="Direction", role="approver", is_active=True),
        "dg": User(id=40, username="dg", full_name="Directeur General", department="Direction", role="dg", is_active=True),
    }


@pytest.fixture()
def memory_store(people):
    store = InMemoryRequestStore()
    for user in people.values():
        store.add_user(user)
    store.add_rule(
        ApprovalChainRule(
            department="Finance",
            validator_id=people["validator"].id,
            approver_id=people["approver"].id,
            dg_id=people["dg"].id,
        )
    )
    return store


@pytest.fixture()
def db_engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture()
def SessionLocal(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture()
def db(SessionLocal):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def sql_people(db):
    users = {
        "requester": User(username="amina", hashed_password="x", full_name="Amina Diallo", department="Finance", role="initiator", is_active=True),
        "validator": User(username="koffi", hashed_password="x", full_name="Koffi Mensah", department="Finance", role="validator", is_active=True),
        "approver": User(username="sara", hashed_password="x", full_name="Sara Benali", department="Direction", role="approver", is_active=True),
        "dg": User(username="dg", hashed_password="x", full_name="Directeur General", department="Direction", role="dg", is_active=True),
        "admin": User(username="admin", hashed_password="x", full_name="Admin", role="admin", is_active=True),
    }
    db.add_all(users.values())
    db.commit()
    db.add(
        ApprovalChainRule(
            department="*",
            validator_id=users["validator"].id,
            approver_id=users["approver"].id,
            dg_id=users["dg"].id,
        )
    )
    db.commit()
    return {k: u.id for k, u in users.items()}
