from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from database import Base


class Application(Base):
    __tablename__ = "applications"

    id = Column(String(64), primary_key=True)
    owner_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    owner_name = Column(String(256), nullable=False)
    owner_email = Column(String(320), nullable=True)
    owner_phone = Column(String(32), nullable=True)
    business_name = Column(String(256), nullable=False)
    business_type = Column(String(128), nullable=False)
    address = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, default="Pending")
    created_at = Column(DateTime(timezone=True), nullable=False)
    # Last accepted status transition; equals created_at until reviewed
    updated_at = Column(DateTime(timezone=True), nullable=False)

    attachments = relationship(
        "ApplicationAttachment",
        back_populates="application",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_applications_owner_created", "owner_id", "created_at"),
        Index("ix_applications_created_id", "created_at", "id"),
        Index("ix_applications_status_created", "status", "created_at"),
    )


class ApplicationAttachment(Base):
    __tablename__ = "application_attachments"

    id = Column(String(36), primary_key=True)
    application_id = Column(
        String(64), ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True
    )
    slot = Column(String(64), nullable=False)
    reference = Column(String(1024), nullable=False)
    attached_at = Column(DateTime(timezone=True), nullable=False)

    application = relationship("Application", back_populates="attachments")

    # One reference per slot; the constraint is what makes attach write-once
    __table_args__ = (UniqueConstraint("application_id", "slot", name="uq_attachment_slot"),)
