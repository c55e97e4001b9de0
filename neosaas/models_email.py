"""
Email Provider Models
Database models for provider credentials (encrypted) and send history
"""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text

from .database import Base


class EmailProviderConfig(Base):
    """Per-provider configuration. Credentials are stored only as vault output."""

    __tablename__ = "email_provider_configs"

    provider = Column(String(50), primary_key=True)  # resend, scaleway-tem, aws-ses
    is_active = Column(Boolean, default=True, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)
    config = Column(JSON, nullable=False)  # {"encrypted": "<base64 blob>"}
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class EmailLog(Base):
    """One row per send attempt outcome recorded by the email router"""

    __tablename__ = "email_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    provider = Column(String(50), nullable=False)
    recipients = Column(JSON, nullable=False)
    subject = Column(String(500), nullable=False)
    status = Column(String(20), nullable=False)  # sent, failed
    message_id = Column(String(255), nullable=True)
    error_message = Column(Text, nullable=True)
    tags = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
