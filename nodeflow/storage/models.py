"""SQLAlchemy database models for the workflow store."""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text, JSON
from .database import Base


class WorkflowModel(Base):
    """Database model for workflow definitions."""
    __tablename__ = "workflows"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False, default="")
    description = Column(Text)
    status = Column(String, nullable=False)  # inactive, active
    definition = Column(JSON, nullable=False)  # Nodes and connections
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)
