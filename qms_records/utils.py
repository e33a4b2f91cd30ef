import hashlib
import json
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every record timestamp is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_jsonable(v: Any) -> Any:
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    if isinstance(v, Decimal):
        return float(v)
    return v


def row_to_dict(row) -> dict:
    return {c.name: to_jsonable(getattr(row, c.name)) for c in row.__table__.columns}


def fingerprint(payload: dict) -> str:
    raw = json.dumps(payload, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def is_blank(v: Any) -> bool:
    return v is None or (isinstance(v, str) and v.strip() == "")


def add_days_iso(today: date, days: int) -> str:
    return (today + timedelta(days=days)).isoformat()


def prev_month(year: int, month: int) -> tuple[int, int]:
    idx = (year * 12 + (month - 1)) - 1
    return idx // 12, (idx % 12) + 1
