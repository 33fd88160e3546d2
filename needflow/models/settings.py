from sqlalchemy import Column, Integer, String

from needflow.db.session import Base


class SystemSetting(Base):
    """Key/value settings; secret values are sealed by NotificationSettings before they land here."""
    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String, unique=True, index=True, nullable=False)
    value = Column(String, nullable=False)
    description = Column(String, nullable=True)
    category = Column(String, default="General")
