import pytest

from needflow.core.exceptions import Forbidden, NotFound
from needflow.models.notification import Notification
from needflow.models.settings import SystemSetting
from needflow.models.user import User
from needflow.services import notification_service as ns
from needflow.services.notification_service import NotificationDispatcher, NotificationService


def test_notify_persists_unread_notification(SessionLocal, sql_people):
    n = NotificationDispatcher(SessionLocal).notify(sql_people["validator"], 1, "New request requires your approval: x")
    assert n is not None

    db = SessionLocal()
    rows = db.query(Notification).all()
    assert len(rows) == 1
    assert rows[0].user_id == sql_people["validator"]
    assert rows[0].is_read is False
    db.close()


def test_notify_swallows_storage_failures():
    class BrokenSession:
        def add(self, obj):
            raise RuntimeError("connection lost")

        def rollback(self):
            pass

        def close(self):
            pass

    assert NotificationDispatcher(lambda: BrokenSession()).notify(1, 1, "hello") is None


def test_notify_sends_email_when_enabled(monkeypatch, SessionLocal, db, sql_people):
    user = db.query(User).filter(User.id == sql_people["approver"]).first()
    user.email = "sara@example.com"
    db.add(SystemSetting(key="notification_email_enabled", value="true", description="", category="Notification"))
    db.commit()

    sent = []

    def fake_send(db, to_email, subject, content):
        sent.append((to_email, content))
        return {"success": True}

    monkeypatch.setattr(ns.EmailService, "send_email", staticmethod(fake_send))
    NotificationDispatcher(SessionLocal).notify(sql_people["approver"], 7, "please approve")
    assert sent == [("sara@example.com", "please approve")]


def test_notify_skips_email_when_disabled(monkeypatch, SessionLocal, sql_people):
    def fail_send(*args, **kwargs):
        raise AssertionError("email must not be sent")

    monkeypatch.setattr(ns.EmailService, "send_email", staticmethod(fail_send))
    assert NotificationDispatcher(SessionLocal).notify(sql_people["approver"], 7, "please approve") is not None


def test_list_and_mark_read(db, sql_people):
    mine = Notification(user_id=sql_people["requester"], request_id=1, message="a")
    other = Notification(user_id=sql_people["validator"], request_id=1, message="b")
    db.add_all([mine, other])
    db.commit()

    assert [n.message for n in NotificationService.list_for_user(db, sql_people["requester"], unread_only=True)] == ["a"]

    with pytest.raises(Forbidden):
        NotificationService.mark_read(db, other.id, sql_people["requester"])
    with pytest.raises(NotFound):
        NotificationService.mark_read(db, 999, sql_people["requester"])

    read = NotificationService.mark_read(db, mine.id, sql_people["requester"])
    assert read.is_read is True
    assert NotificationService.list_for_user(db, sql_people["requester"], unread_only=True) == []
    assert len(NotificationService.list_for_user(db, sql_people["requester"])) == 1
