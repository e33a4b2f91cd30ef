import calendar
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from .database import get_db
from .errors import NotFound, ValidationError
from .models_records import QualityObjectiveProgress
from .modules import QUALITY_OBJECTIVES
from .records import RecordStore, describe_validation_error
from .schemas import ProgressEntryIn
from .scope import Caller, get_caller
from .utils import row_to_dict, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"/api/{QUALITY_OBJECTIVES.slug}", tags=["Quality Objective Progress"])

TREND_THRESHOLD = 5.0


# =====================================
# Helpers
# =====================================
def _objective(db: Session, caller: Caller, objective_id: int):
    return RecordStore(db, QUALITY_OBJECTIVES).get(caller, objective_id)


def _entries(db: Session, objective_id: int, newest_first: bool = False) -> list[QualityObjectiveProgress]:
    order = (
        (QualityObjectiveProgress.year.desc(), QualityObjectiveProgress.month.desc())
        if newest_first
        else (QualityObjectiveProgress.year.asc(), QualityObjectiveProgress.month.asc())
    )
    return (
        db.query(QualityObjectiveProgress)
        .filter(QualityObjectiveProgress.objective_id == objective_id)
        .order_by(*order)
        .all()
    )


def _avg(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def progress_trend(percentages: list[float]) -> str:
    """Compare the last three entries against the three before them."""
    last = percentages[-3:]
    previous = percentages[-6:-3]
    if len(last) < 2 or len(previous) < 2:
        return "stable"

    last_avg, prev_avg = _avg(last), _avg(previous)
    if last_avg > prev_avg + TREND_THRESHOLD:
        return "improving"
    if last_avg < prev_avg - TREND_THRESHOLD:
        return "declining"
    return "stable"


def progress_statistics(entries: list[QualityObjectiveProgress], current_year: int, current_month: int) -> dict:
    """entries must be ordered oldest first."""
    values = [float(e.percentage) for e in entries]
    this_year = [e for e in entries if e.year == current_year]
    latest = entries[-1] if entries else None

    existing_months = {e.month for e in this_year}
    return {
        "total_entries": len(entries),
        "average_progress": round(_avg(values), 2),
        "max_progress": max(values) if values else 0,
        "min_progress": min(values) if values else 0,
        "current_year_average": round(_avg([float(e.percentage) for e in this_year]), 2),
        "latest_progress": float(latest.percentage) if latest else None,
        "latest_progress_date": f"{latest.year}-{latest.month:02d}" if latest else None,
        "trend": progress_trend(values),
        "missing_months": [m for m in range(1, 13) if m not in existing_months],
        "current_year": current_year,
        "current_month": current_month,
    }


def _chart_point(e: QualityObjectiveProgress) -> dict:
    return {
        "month": e.month,
        "year": e.year,
        "percentage": float(e.percentage),
        "date": f"{e.year}-{e.month:02d}",
        "month_name": calendar.month_abbr[e.month],
    }


# =====================================
# Progress entries
# =====================================
@router.get("/{objective_id}/progress")
def list_progress(
    objective_id: int,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    _objective(db, caller, objective_id)
    return {
        "success": True,
        "objective_id": objective_id,
        "progress_entries": [row_to_dict(e) for e in _entries(db, objective_id, newest_first=True)],
    }


@router.post("/{objective_id}/progress")
def save_progress(
    objective_id: int,
    payload: dict,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """Create or replace the entry for one month of one objective.

    Body:
    { "month": 3, "year": 2026, "percentage": 45, "notes": "..." }
    """
    caller.require()
    try:
        data = ProgressEntryIn.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(describe_validation_error(e))

    _objective(db, caller, objective_id)

    now = utcnow()
    entry = (
        db.query(QualityObjectiveProgress)
        .filter(
            QualityObjectiveProgress.objective_id == objective_id,
            QualityObjectiveProgress.month == data.month,
            QualityObjectiveProgress.year == data.year,
        )
        .first()
    )
    if entry is None:
        entry = QualityObjectiveProgress(
            objective_id=objective_id,
            month=data.month,
            year=data.year,
            created_by=caller.user_id,
            created_at=now,
        )
        db.add(entry)

    entry.percentage = data.percentage
    entry.notes = data.notes
    entry.updated_at = now
    db.commit()
    db.refresh(entry)

    logger.info("saved progress objective=%s %s-%02d", objective_id, data.year, data.month)
    return {
        "success": True,
        "message": "Progress entry saved successfully",
        "progress_entry": row_to_dict(entry),
    }


@router.delete("/{objective_id}/progress")
def delete_progress(
    objective_id: int,
    month: Optional[int] = None,
    year: Optional[int] = None,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    caller.require()
    if month is None or year is None:
        raise ValidationError("Month and year parameters are required")

    _objective(db, caller, objective_id)

    entry = (
        db.query(QualityObjectiveProgress)
        .filter(
            QualityObjectiveProgress.objective_id == objective_id,
            QualityObjectiveProgress.month == month,
            QualityObjectiveProgress.year == year,
        )
        .first()
    )
    if entry is None:
        raise NotFound("Progress entry not found")

    db.delete(entry)
    db.commit()
    return {"success": True, "message": "Progress entry deleted successfully"}


@router.get("/{objective_id}/progress/stats")
def progress_stats(
    objective_id: int,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    _objective(db, caller, objective_id)

    today = utcnow().date()
    entries = _entries(db, objective_id)

    yearly: dict[int, list[dict]] = {}
    for e in entries:
        yearly.setdefault(e.year, []).append(
            {"month": e.month, "percentage": float(e.percentage), "month_name": calendar.month_abbr[e.month]}
        )

    return {
        "success": True,
        "objective_id": objective_id,
        "statistics": progress_statistics(entries, today.year, today.month),
        "chart_data": [_chart_point(e) for e in entries],
        "yearly_data": yearly,
        "progress_entries": [row_to_dict(e) for e in entries],
    }
