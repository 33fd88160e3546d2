from needflow.models.settings import SystemSetting
from needflow.services import email_service as es
from needflow.services.settings_service import MASK, NotificationSettings


def _stored(db, key):
    db.expire_all()
    return db.query(SystemSetting).filter(SystemSetting.key == key).first().value


def test_only_the_smtp_password_is_sealed(db):
    NotificationSettings.update(db, {"smtp_password": "hunter2", "smtp_user": "mailer", "smtp_host": "smtp.local"})

    assert _stored(db, "smtp_password").startswith("enc:")
    assert _stored(db, "smtp_user") == "mailer"
    assert _stored(db, "smtp_host") == "smtp.local"
    assert NotificationSettings.get_value(db, "smtp_password") == "hunter2"


def test_mask_placeholder_keeps_existing_password(db):
    NotificationSettings.update(db, {"smtp_password": "hunter2"})
    sealed = _stored(db, "smtp_password")

    updated = NotificationSettings.update(db, {"smtp_password": MASK, "smtp_port": 2525})
    assert updated == ["smtp_port"]
    assert _stored(db, "smtp_password") == sealed
    assert NotificationSettings.masked(db)["smtp_password"] == MASK
    assert NotificationSettings.masked(db)["smtp_port"] == "2525"


def test_password_saved_before_sealing_is_still_readable(db):
    db.add(SystemSetting(key="smtp_password", value="legacy-plain", category="Notifications"))
    db.commit()
    assert NotificationSettings.get_value(db, "smtp_password") == "legacy-plain"


def test_undecryptable_password_falls_back_to_default(db):
    db.add(SystemSetting(key="smtp_password", value="enc:garbage", category="Notifications"))
    db.commit()
    assert NotificationSettings.get_value(db, "smtp_password", "") == ""
    assert es.EmailService.send_email(db, "a@example.com", "s", "c") == {
        "success": False,
        "error": "SMTP credentials not configured.",
    }


def test_smtp_login_uses_the_unsealed_password(monkeypatch, db):
    NotificationSettings.update(db, {"smtp_user": "mailer", "smtp_password": "hunter2", "smtp_host": "smtp.local"})
    logins = []

    class FakeSMTP:
        def __init__(self, host, port, timeout=None):
            logins.append(("connect", host, port))

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def starttls(self):
            pass

        def login(self, user, password):
            logins.append(("login", user, password))

        def sendmail(self, from_addr, to_addr, msg):
            logins.append(("send", to_addr))

    monkeypatch.setattr(es.smtplib, "SMTP", FakeSMTP)
    res = es.EmailService.send_email(db, "koffi@example.com", "Reminder", "please approve")

    assert res["success"] is True
    assert logins == [
        ("connect", "smtp.local", 587),
        ("login", "mailer", "hunter2"),
        ("send", "koffi@example.com"),
    ]
