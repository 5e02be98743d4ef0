"""All ORM models.

Tables: components, settings, service_hooks
service_hooks rows cascade with their owning component.
"""

from sqlalchemy import Column, String, Integer, DateTime, JSON, Boolean, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase
from datetime import datetime, timezone
import uuid


class Base(DeclarativeBase):
    pass


class ComponentModel(Base):
    __tablename__ = "components"
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False, unique=True, index=True)
    package = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    version = Column(String, nullable=True)
    commands = Column(JSON, default=list)
    env_vars = Column(JSON, default=list)
    topics = Column(JSON, default=list)
    url = Column(String, nullable=True)
    stars = Column(Integer, default=0)
    status = Column(String, default="active")
    installed_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))


class SettingModel(Base):
    __tablename__ = "settings"
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    key = Column(String, nullable=False, unique=True, index=True)
    value = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))


class ServiceHookModel(Base):
    __tablename__ = "service_hooks"
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    hook_id = Column(String, nullable=False)
    component_name = Column(
        String,
        ForeignKey("components.name", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    enabled = Column(Boolean, default=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (UniqueConstraint("hook_id", "component_name", name="uq_hook_component"),)
