from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from needflow.db.session import Base
from needflow.models.enums import UserRole

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=True)
    hashed_password = Column(String, nullable=False)
    full_name = Column(String, nullable=True)
    department = Column(String, nullable=True, index=True)
    role = Column(String, default=UserRole.INITIATOR.value) # admin, initiator, validator, approver, dg
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_login = Column(DateTime(timezone=True), nullable=True)
