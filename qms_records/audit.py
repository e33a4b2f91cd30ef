# qms_records/audit.py
from sqlalchemy.orm import Session

from .models_audit import HistoryRecord
from .utils import to_jsonable, utcnow

CHANGE_TYPES = ("created", "updated", "deleted")


def take_snapshot(row, fields: tuple[str, ...]) -> dict:
    return {f: to_jsonable(getattr(row, f, None)) for f in fields}


def record_history(
    db: Session,
    entity_type: str,
    entity_id: int,
    business_area: str,
    change_type: str,
    snapshot: dict | None = None,
    changed_by: int | None = None,
) -> HistoryRecord:
    """Append one history row inside the caller's transaction.

    Nothing is committed here; the triggering write commits both rows
    together or rolls both back.
    """
    if change_type not in CHANGE_TYPES:
        raise ValueError(f"Unknown change_type: {change_type}")

    rec = HistoryRecord(
        entity_type=entity_type,
        entity_id=entity_id,
        business_area=business_area,
        change_type=change_type,
        snapshot=snapshot,
        changed_by=changed_by,
        change_date=utcnow(),
    )
    db.add(rec)
    db.flush()
    return rec


def history_for(db: Session, entity_type: str, entity_id: int) -> list[HistoryRecord]:
    return (
        db.query(HistoryRecord)
        .filter(HistoryRecord.entity_type == entity_type, HistoryRecord.entity_id == entity_id)
        .order_by(HistoryRecord.change_date.asc(), HistoryRecord.id.asc())
        .all()
    )
