# qms_records/models_audit.py
from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey, UniqueConstraint

from .database import Base


class HistoryRecord(Base):
    """Append-only change row for a tracked record.

    ``entity_id`` is a back-reference only: history is never cascaded away
    with its subject and outlives soft deletion.
    """

    __tablename__ = "record_history"

    id = Column(Integer, primary_key=True, index=True)
    entity_type = Column(String(64), nullable=False, index=True)   # e.g. "risk_control"
    entity_id = Column(Integer, nullable=False, index=True)
    business_area = Column(String(100), nullable=False, index=True)

    change_type = Column(String(16), nullable=False)                # "created" | "updated" | "deleted"
    snapshot = Column(JSON, nullable=True)
    changed_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    change_date = Column(DateTime, nullable=False)


class IdempotencyRecord(Base):
    __tablename__ = "idempotency_keys"
    __table_args__ = (
        UniqueConstraint("entity_type", "business_area", "key", name="uq_idempotency_scope_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    entity_type = Column(String(64), nullable=False)
    business_area = Column(String(100), nullable=False)
    key = Column(String(128), nullable=False)
    fingerprint = Column(String(64), nullable=False)
    entity_id = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False)
