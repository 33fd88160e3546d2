from datetime import timedelta

from needflow.core.clock import utcnow
from needflow.models.notification import Notification
from needflow.services.reminder_service import ReminderSweeper
from needflow.services.request_store import SqlRequestStore
from needflow.services.workflow_engine import WorkflowEngine


def test_only_the_awaited_step_is_reminded_once_per_window(memory_store, people, dispatcher, clock):
    engine = WorkflowEngine(memory_store, clock=clock)
    req = engine.create_request(people["requester"], title="Projector", department="Finance")
    sweeper = ReminderSweeper(memory_store, clock=clock)

    clock.advance(hours=23)
    assert sweeper.run(dispatcher) == {"reminded": 0, "steps": []}

    clock.advance(hours=2)
    result = sweeper.run(dispatcher)
    validator_step = memory_store.get_steps(req.id)[1]
    assert result == {"reminded": 1, "steps": [validator_step.id]}
    assert dispatcher.sent == [
        (
            people["validator"].id,
            req.id,
            f"Reminder: request {req.ticket_id} has been awaiting your approval for more than 24h",
        )
    ]
    assert validator_step.last_reminded_at == clock.now

    clock.advance(hours=1)
    assert sweeper.run(dispatcher)["reminded"] == 0

    clock.advance(hours=24)
    assert sweeper.run(dispatcher)["reminded"] == 1
    assert len(dispatcher.for_user(people["approver"].id)) == 0


def test_terminal_requests_are_not_reminded(memory_store, people, dispatcher, clock):
    engine = WorkflowEngine(memory_store, clock=clock)
    req = engine.create_request(people["requester"], title="Projector", department="Finance")
    engine.apply_action(req.id, people["validator"].id, "reject")

    clock.advance(hours=48)
    assert ReminderSweeper(memory_store, clock=clock).run(dispatcher)["reminded"] == 0


def test_custom_staleness_window(memory_store, people, dispatcher, clock):
    engine = WorkflowEngine(memory_store, clock=clock)
    engine.create_request(people["requester"], title="Projector", department="Finance")

    clock.advance(hours=3)
    sweeper = ReminderSweeper(memory_store, stale_after=timedelta(hours=2), clock=clock)
    reminders = sweeper.sweep()
    assert len(reminders) == 1
    assert reminders[0].message.endswith("for more than 2h")


def test_reminder_task_persists_notification(monkeypatch, SessionLocal, sql_people):
    from needflow.tasks import reminders as tr

    monkeypatch.setattr(tr, "SessionLocal", SessionLocal)

    db = SessionLocal()
    store = SqlRequestStore(db)
    engine = WorkflowEngine(store, clock=lambda: utcnow() - timedelta(hours=30))
    req = engine.create_request(store.get_user(sql_people["requester"]), title="Scanner", department="HR")
    req_id = req.id
    db.close()

    res = tr.send_pending_reminders()
    assert res["reminded"] == 1

    res = tr.send_pending_reminders()
    assert res["reminded"] == 0

    db = SessionLocal()
    rows = db.query(Notification).filter(Notification.request_id == req_id).all()
    assert len(rows) == 1
    assert rows[0].user_id == sql_people["validator"]
    assert rows[0].message.startswith("Reminder: request REQ-")
    db.close()


def test_reminder_task_reports_failure(monkeypatch):
    from needflow.tasks import reminders as tr

    def broken_run(self, dispatcher):
        raise RuntimeError("db down")

    monkeypatch.setattr(tr.ReminderSweeper, "run", broken_run)
    res = tr.send_pending_reminders()
    assert res == {"reminded": 0, "steps": [], "error": True}
