"""Database models."""
from datetime import datetime

from sqlalchemy import Column, DateTime, JSON, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ClientState(Base):
    """Durable dashboard preference (one JSON value per key)."""

    __tablename__ = "client_state"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
