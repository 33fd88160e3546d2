import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from sqlalchemy.orm import Session

from needflow.services.settings_service import NotificationSettings

logger = logging.getLogger(__name__)


class EmailService:
    @staticmethod
    def is_enabled(db: Session) -> bool:
        value = NotificationSettings.get_value(db, "notification_email_enabled", "false")
        return value.strip().lower() in {"1", "true", "yes"}

    @staticmethod
    def send_email(db: Session, to_email: str, subject: str, content: str) -> dict:
        host = NotificationSettings.get_value(db, "smtp_host", "localhost")
        port = int(NotificationSettings.get_value(db, "smtp_port", "587"))
        username = NotificationSettings.get_value(db, "smtp_user", "")
        password = NotificationSettings.get_value(db, "smtp_password", "")
        from_email = NotificationSettings.get_value(db, "smtp_from", username)

        if not to_email:
            return {"success": False, "error": "No recipient email configured."}
        if not username or not password:
            return {"success": False, "error": "SMTP credentials not configured."}

        msg = MIMEMultipart()
        msg["From"] = from_email
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(content, "plain"))

        try:
            with smtplib.SMTP(host, port, timeout=10) as server:
                server.starttls()
                server.login(username, password)
                server.sendmail(from_email, to_email, msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("SMTP delivery failed: %s", e)
            return {"success": False, "error": str(e)}
        return {"success": True, "message": "Email sent successfully"}
