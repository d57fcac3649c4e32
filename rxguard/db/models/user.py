import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean, Integer, JSON

from rxguard.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=True, index=True)
    name = Column(String(255))
    pharmacy_id = Column(String(36), nullable=True, index=True)
    role = Column(String(32), nullable=False)
    # NULL until the first management operation; then the full stored list
    permissions = Column(JSON(none_as_null=True), nullable=True)
    version = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
