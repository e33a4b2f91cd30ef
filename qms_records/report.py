"""Management report for one business area.

Read-only roll-up over the active (not soft-deleted) rows of every record
module. Each section is computed independently: a section whose rows cannot
be read is logged, reported as ``None`` and listed in
``unavailable_sections``, and the health score is computed from the
sections that remain.
"""
import logging
import math
from datetime import date
from typing import Callable, Optional

import pandas as pd
from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import HEALTH_WEIGHTS
from .models_records import (
    BusinessDocument,
    BusinessImprovement,
    BusinessProcess,
    CustomerFeedbackSystem,
    NonConformity,
    PerformanceMonitoringControl,
    QualityObjective,
    QualityObjectiveProgress,
    RecordKeepingSystem,
    RiskControl,
    ThirdPartyEvaluation,
    TrainingSession,
)
from .utils import add_days_iso, prev_month, utcnow

logger = logging.getLogger(__name__)

SECTIONS = (
    "quality_objectives",
    "process_management",
    "risk_management",
    "compliance",
    "operational_excellence",
    "resource_management",
    "customer_focus",
)

# inherent risk score buckets (likeliness * impact, 1-25)
HIGH_RISK = (15, 25)
MEDIUM_RISK = (8, 14)
LOW_RISK = (1, 7)

CHALLENGED = ("Major Challenges", "Minor Challenges")
OPEN_NC = ("Open", "In Progress")
URGENT = ("Critical", "High")

TREND_THRESHOLD = 5.0
RECENT_DAYS = 30
PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}


def risk_level(score: float) -> str:
    if score >= 80:
        return "green"
    if score >= 60:
        return "yellow"
    return "red"


def overall_health_score(section_scores: dict[str, Optional[float]], weights: dict[str, float]) -> float:
    """Weighted mean of the available section scores, clamped to 0-100.

    Weights of unavailable sections are dropped and the rest renormalised.
    """
    available = {k: v for k, v in section_scores.items() if v is not None and weights.get(k, 0) > 0}
    total_weight = sum(weights[k] for k in available)
    if total_weight <= 0:
        return 0.0
    score = sum(v * weights[k] for k, v in available.items()) / total_weight
    return round(min(max(score, 0.0), 100.0), 2)


# =========================
# Frame helpers
# =========================
def _load_rows(db: Session, model, business_area: str) -> list:
    return (
        db.query(model)
        .filter(model.business_area == business_area, model.deleted_at.is_(None))
        .all()
    )


def _to_frame(rows: list, model) -> pd.DataFrame:
    cols = [c.name for c in model.__table__.columns]
    return pd.DataFrame([{c: getattr(r, c) for c in cols} for r in rows], columns=cols)


def _num(df: pd.DataFrame, col: str) -> pd.Series:
    return pd.to_numeric(df[col], errors="coerce")


def _mean(df: pd.DataFrame, col: str) -> float:
    # missing values count as zero progress
    if df.empty:
        return 0.0
    return float(_num(df, col).fillna(0).mean())


def _is(df: pd.DataFrame, col: str, *values) -> pd.Series:
    return df[col].isin(list(values))


def _count(mask: pd.Series) -> int:
    return int(mask.sum())


def _dates(df: pd.DataFrame, col: str) -> pd.Series:
    return pd.to_datetime(df[col], errors="coerce")


def _pct(part: int, whole: int, empty: float = 0.0) -> float:
    return part / whole * 100.0 if whole > 0 else empty


def _avg_days(df: pd.DataFrame, start: str, end: str) -> float:
    if df.empty:
        return 0.0
    days = (_dates(df, end) - _dates(df, start)).dt.total_seconds() / 86400.0
    days = days.dropna()
    if days.empty:
        return 0.0
    return float(days.apply(math.ceil).mean())


def _text(v, default: str) -> str:
    if v is None or (not isinstance(v, str) and pd.isna(v)):
        return default
    s = str(v).strip()
    return s or default


def _short(v, limit: int = 100) -> str:
    s = _text(v, "")
    return s[:limit] + "..." if len(s) > limit else s


def _fmt_num(v) -> str:
    if v is None or pd.isna(v):
        return "n/a"
    f = float(v)
    return str(int(f)) if f.is_integer() else f"{f:.1f}"


# =========================
# Builder
# =========================
class ReportBuilder:
    def __init__(
        self,
        db: Session,
        business_area: str,
        weights: Optional[dict[str, float]] = None,
        today: Optional[date] = None,
    ):
        self.db = db
        self.business_area = business_area
        self.weights = weights or HEALTH_WEIGHTS
        self.today = today or utcnow().date()
        self.ts_today = pd.Timestamp(self.today)
        self._frames: dict[type, pd.DataFrame] = {}
        self.unavailable: list[str] = []

    def frame(self, model) -> pd.DataFrame:
        if model not in self._frames:
            self._frames[model] = _to_frame(_load_rows(self.db, model, self.business_area), model)
        return self._frames[model]

    def _guard(self, name: str, fn: Callable, fallback):
        try:
            return fn()
        except SQLAlchemyError:
            logger.exception("Report section %s failed for %s", name, self.business_area)
            self.db.rollback()
            self.unavailable.append(name)
            return fallback

    # -----------------------------
    # Sections: each returns (metrics, score)
    # -----------------------------
    def quality_objectives(self):
        df = self.frame(QualityObjective)
        total = len(df)
        completed = _count(_is(df, "progress", "Completed"))
        average = _mean(df, "status_percentage")
        metrics = {
            "total_objectives": total,
            "completed_objectives": completed,
            "completion_rate": average,
            "average_progress": average,
            "objectives_at_risk": _count(_is(df, "progress", *CHALLENGED)),
            "kpi_compliance_rate": _pct(completed, total),
        }
        return metrics, average

    def process_management(self):
        df = self.frame(BusinessProcess)
        total = len(df)
        critical = _is(df, "priority", "High")
        done = _is(df, "doc_status", "Completed")
        efficiency = _mean(df, "status_percentage")
        metrics = {
            "total_processes": total,
            "documented_processes": _count(done),
            "completion_rate": efficiency,
            "critical_processes_status": _pct(_count(critical & done), _count(critical)),
            "efficiency_score": efficiency,
        }
        return metrics, efficiency

    def risk_management(self):
        df = self.frame(RiskControl)
        total = len(df)
        scores = _num(df, "inherent_risk_score")
        high = _count(scores.between(*HIGH_RISK))
        valid = scores.dropna()
        since = self.ts_today - pd.Timedelta(days=RECENT_DAYS)
        metrics = {
            "total_risks": total,
            "risk_distribution": {
                "high": high,
                "medium": _count(scores.between(*MEDIUM_RISK)),
                "low": _count(scores.between(*LOW_RISK)),
            },
            "mitigation_progress": _pct(_count(_is(df, "status", "Closed")), total),
            "new_risks_this_period": _count(_dates(df, "created_at") >= since),
            "average_impact_level_score": float(valid.mean()) if not valid.empty else 0.0,
        }
        return metrics, max(0.0, 100.0 - high * 10.0)

    def compliance(self):
        df = self.frame(BusinessDocument)
        total = len(df)
        review = _dates(df, "review_date")
        completed = _count(_is(df, "doc_status", "Completed"))
        up_to_date = _count(review >= self.ts_today)
        rate = _mean(df, "status_percentage")
        readiness = (completed / total * 50.0 + up_to_date / total * 50.0) if total else 0.0
        metrics = {
            "required_documents": total,
            "available_documents": completed,
            "compliance_rate": rate,
            "review_status": {
                "up_to_date": up_to_date,
                "overdue": _count(review < self.ts_today),
                "pending": _count(_is(df, "doc_status", "Not Started")),
            },
            "audit_readiness_score": readiness,
        }
        return metrics, rate

    def operational_excellence(self):
        nc = self.frame(NonConformity)
        bi = self.frame(BusinessImprovement)
        rks = self.frame(RecordKeepingSystem)
        pmc = self.frame(PerformanceMonitoringControl)
        tpe = self.frame(ThirdPartyEvaluation)
        cfs = self.frame(CustomerFeedbackSystem)
        now = self.ts_today

        nc_closed = _is(nc, "status", "Closed")
        resolved = nc[nc_closed]
        nc_metrics = {
            "total_non_conformities": len(nc),
            "open_non_conformities": _count(_is(nc, "status", *OPEN_NC)),
            "closed_non_conformities": _count(nc_closed),
            "average_resolution_time": _avg_days(resolved, "created_at", "actual_resolution_date"),
            "critical_non_conformities": _count(_is(nc, "priority", "Critical")),
            "high_priority_non_conformities": _count(_is(nc, "priority", *URGENT)),
            "overdue_non_conformities": _count((_dates(nc, "target_date") < now) & ~nc_closed),
        }

        bi_done = _is(bi, "status", "Completed")
        bi_metrics = {
            "total_improvements": len(bi),
            "completed_improvements": _count(bi_done),
            "in_progress_improvements": _count(_is(bi, "status", "In Progress")),
            "planned_improvements": _count(_is(bi, "status", "Planned")),
            "average_completion_time": _avg_days(bi[bi_done], "created_at", "actual_completion_date"),
            "high_priority_improvements": _count(_is(bi, "priority", *URGENT)),
        }

        rks_metrics = {
            "total_record_systems": len(rks),
            "compliant_systems": _count(_is(rks, "compliance_status", "Compliant")),
            "non_compliant_systems": _count(_is(rks, "compliance_status", "Non-Compliant")),
            "average_compliance_score": _mean(rks, "status_percentage"),
            "overdue_audits": _count(_dates(rks, "next_audit_date") < now),
        }

        pmc_done = _is(pmc, "doc_status", "Completed")
        pmc_metrics = {
            "total_controls": len(pmc),
            "completed_controls": _count(pmc_done),
            "overdue_controls": _count((_dates(pmc, "target_date") < now) & ~pmc_done),
            "average_performance_score": _mean(pmc, "status_percentage"),
            "critical_controls": _count(_is(pmc, "priority", "High")),
        }

        tpe_metrics = {
            "total_evaluations": len(tpe),
            "completed_evaluations": _count(_is(tpe, "evaluation_status", "Completed")),
            "pending_evaluations": _count(_is(tpe, "evaluation_status", "Pending")),
            "average_evaluation_score": _mean(tpe, "evaluation_score"),
            "overdue_evaluations": _count(_dates(tpe, "next_evaluation_date") < now),
        }

        cfs_metrics = {
            "total_feedback_systems": len(cfs),
            "active_systems": _count(_is(cfs, "status", "Active")),
            "average_satisfaction_score": _mean(cfs, "satisfaction_score"),
            "response_rate": _mean(cfs, "response_rate"),
        }

        # empty modules count as fully on track
        scores = [
            _pct(nc_metrics["closed_non_conformities"], len(nc), empty=100.0),
            _pct(bi_metrics["completed_improvements"], len(bi), empty=100.0),
            _pct(rks_metrics["compliant_systems"], len(rks), empty=100.0),
            _pct(pmc_metrics["completed_controls"], len(pmc), empty=100.0),
            _pct(tpe_metrics["completed_evaluations"], len(tpe), empty=100.0),
            cfs_metrics["average_satisfaction_score"] if len(cfs) else 100.0,
        ]

        metrics = {
            "open_non_conformities": nc_metrics["open_non_conformities"],
            "closed_non_conformities": nc_metrics["closed_non_conformities"],
            "average_resolution_time": nc_metrics["average_resolution_time"],
            "improvement_initiatives": bi_metrics["total_improvements"],
            "completed_improvements": bi_metrics["completed_improvements"],
            "non_conformity_metrics": nc_metrics,
            "business_improvement_metrics": bi_metrics,
            "record_keeping_metrics": rks_metrics,
            "performance_monitoring_metrics": pmc_metrics,
            "third_party_evaluation_metrics": tpe_metrics,
            "customer_feedback_metrics": cfs_metrics,
            "operational_score": sum(scores) / len(scores),
        }
        return metrics, metrics["operational_score"]

    def resource_management(self):
        df = self.frame(TrainingSession)
        total = len(df)
        average = _mean(df, "status_percentage")
        metrics = {
            "training_sessions_total": total,
            "training_sessions_completed": _count(_is(df, "status", "Completed")),
            "average_training_progress": average,
        }
        return metrics, average if total else 0.0

    def customer_focus(self):
        df = self.frame(CustomerFeedbackSystem)
        total = len(df)
        satisfaction = _mean(df, "satisfaction_score")
        metrics = {
            "feedback_systems": total,
            "active_systems": _count(_is(df, "status", "Active")),
            "customer_satisfaction_score": satisfaction,
            "feedback_response_rate": _mean(df, "response_rate"),
        }
        return metrics, satisfaction if total else 0.0

    # -----------------------------
    # Trend over monthly objective progress
    # -----------------------------
    def trend_analysis(self) -> dict:
        year, month = self.today.year, self.today.month
        p_year, p_month = prev_month(year, month)

        rows = (
            self.db.query(QualityObjectiveProgress.year, QualityObjectiveProgress.month, QualityObjectiveProgress.percentage)
            .join(QualityObjective, QualityObjective.id == QualityObjectiveProgress.objective_id)
            .filter(
                QualityObjective.business_area == self.business_area,
                QualityObjective.deleted_at.is_(None),
                or_(
                    and_(QualityObjectiveProgress.year == year, QualityObjectiveProgress.month == month),
                    and_(QualityObjectiveProgress.year == p_year, QualityObjectiveProgress.month == p_month),
                ),
            )
            .all()
        )
        df = pd.DataFrame([tuple(r) for r in rows], columns=["year", "month", "percentage"])

        def month_avg(y: int, m: int) -> Optional[float]:
            sel = df[(df["year"] == y) & (df["month"] == m)]
            return round(float(_num(sel, "percentage").mean()), 2) if not sel.empty else None

        current = month_avg(year, month)
        previous = month_avg(p_year, p_month)
        delta = round(current - previous, 2) if current is not None and previous is not None else None

        trend = "stable"
        if delta is not None and delta > TREND_THRESHOLD:
            trend = "improving"
        elif delta is not None and delta < -TREND_THRESHOLD:
            trend = "declining"

        return {
            "current_month": current,
            "previous_month": previous,
            "delta": delta,
            "trend": trend,
        }

    # -----------------------------
    # Narrative lists
    # -----------------------------
    def top_achievements(self) -> list[str]:
        out = []
        bp = self.frame(BusinessProcess)
        rc = self.frame(RiskControl)
        qo = self.frame(QualityObjective)
        nc = self.frame(NonConformity)
        bd = self.frame(BusinessDocument)
        bi = self.frame(BusinessImprovement)

        n = _count(_is(bp, "priority", "High") & _is(bp, "doc_status", "Completed"))
        if n:
            out.append(f"Successfully completed {n} high-priority process documentation")

        n = _count((_num(rc, "inherent_risk_score") >= HIGH_RISK[0]) & _is(rc, "status", "Closed"))
        if n:
            out.append(f"Successfully mitigated {n} high-risk items")

        n = _count(_is(qo, "progress", "Completed"))
        if n:
            out.append(f"Achieved {n} quality objectives successfully")

        n = _count(_is(nc, "status", "Closed"))
        if n:
            out.append(f"Successfully resolved {n} non-conformities")

        n = _count(_is(bd, "doc_status", "Completed") & (_dates(bd, "review_date") >= self.ts_today))
        if n:
            out.append(f"Maintained {n} documents with current review status")

        if not qo.empty:
            avg = _mean(qo, "status_percentage")
            if avg >= 80:
                out.append(f"Maintained excellent quality objective completion rate of {avg:.1f}%")
            elif avg >= 60:
                out.append(f"Achieved good quality objective completion rate of {avg:.1f}%")

        since = self.ts_today - pd.Timedelta(days=RECENT_DAYS)
        n = _count(_is(bi, "status", "Completed") & (_dates(bi, "actual_completion_date") >= since))
        if n:
            out.append(f"Completed {n} business improvement initiatives in the last {RECENT_DAYS} days")

        return out[:5]

    def areas_needing_attention(self) -> list[str]:
        out = []
        qo = self.frame(QualityObjective)
        bp = self.frame(BusinessProcess)
        bd = self.frame(BusinessDocument)
        rc = self.frame(RiskControl)
        nc = self.frame(NonConformity)

        avg_q = _mean(qo, "status_percentage")
        avg_p = _mean(bp, "status_percentage")
        avg_d = _mean(bd, "status_percentage")
        if avg_q < 60:
            out.append(f"Quality objectives completion rate is {avg_q:.1f}% - below target threshold of 60%")
        if avg_p < 50:
            out.append(f"Process documentation completion rate is {avg_p:.1f}% - requires immediate attention")
        if avg_d < 70:
            out.append(f"Document compliance rate is {avg_d:.1f}% - below compliance target of 70%")

        n = _count((_num(rc, "inherent_risk_score") >= HIGH_RISK[0]) & ~_is(rc, "status", "Closed"))
        if n:
            out.append(f"{n} high-risk items require immediate mitigation attention")

        n = _count((_dates(bd, "review_date") < self.ts_today) & ~_is(bd, "doc_status", "Completed"))
        if n:
            out.append(f"{n} document reviews are overdue and require immediate attention")

        n = _count(_is(nc, "status", *OPEN_NC))
        if n:
            out.append(f"{n} non-conformities are open and need resolution")

        n = _count(_is(bp, "priority", "High") & (_num(bp, "status_percentage") < 30))
        if n:
            out.append(f"{n} high-priority processes have completion rates below 30%")

        n = _count(_is(qo, "progress", *CHALLENGED))
        if n:
            out.append(f"{n} quality objectives are facing challenges and need intervention")

        return out[:5]

    def critical_actions(self) -> list[dict]:
        actions = []

        def add(title, description, priority, deadline, owner):
            actions.append({
                "id": str(len(actions) + 1),
                "title": title,
                "description": description,
                "priority": priority,
                "deadline": deadline,
                "responsible_person": owner,
                "status": "pending",
            })

        rc = self.frame(RiskControl)
        high = rc[(_num(rc, "inherent_risk_score") >= HIGH_RISK[0]) & ~_is(rc, "status", "Closed")]
        for r in high.head(5).to_dict(orient="records"):
            add(
                f"Mitigate High-Risk Item: {_text(r['process_name'], 'Untitled Risk')}",
                f"Risk score: {_fmt_num(r['inherent_risk_score'])}. Status: {_text(r['status'], 'n/a')}. "
                f"Issue: {_short(r['issue_description'])}. Requires immediate attention to reduce risk exposure.",
                "high",
                add_days_iso(self.today, 7),
                _text(r["control_owner"], "Risk Manager"),
            )

        bd = self.frame(BusinessDocument)
        overdue_docs = bd[(_dates(bd, "review_date") < self.ts_today) & ~_is(bd, "doc_status", "Completed")]
        for r in overdue_docs.head(3).to_dict(orient="records"):
            add(
                f"Review Overdue Document: {_text(r['document_name'], 'Untitled Document')}",
                f"Document review was due on {r['review_date']}. Current status: {_text(r['doc_status'], 'n/a')}.",
                "high",
                add_days_iso(self.today, 3),
                _text(r["document_owner"], "Document Owner"),
            )

        bp = self.frame(BusinessProcess)
        slow = bp[_is(bp, "priority", "High") & (_num(bp, "status_percentage") < 30)]
        for r in slow.head(3).to_dict(orient="records"):
            add(
                f"Accelerate High-Priority Process: {_text(r['process_name'], 'Untitled Process')}",
                f"Process completion rate: {_fmt_num(r['status_percentage'])}%. Priority: {r['priority']}. "
                "Needs immediate attention to meet targets.",
                "medium",
                add_days_iso(self.today, 14),
                _text(r["process_owner"], "Process Owner"),
            )

        qo = self.frame(QualityObjective)
        for r in qo[_is(qo, "progress", *CHALLENGED)].head(3).to_dict(orient="records"):
            add(
                f"Address Quality Objective Challenge: {_text(r['qms_main_objectives'], 'Untitled Objective')}",
                f"Current progress: {r['progress']}. Status: {_fmt_num(r['status_percentage'])}%. "
                "Requires intervention to meet targets.",
                "medium",
                add_days_iso(self.today, 10),
                _text(r["responsible_person_team"], "Quality Manager"),
            )

        nc = self.frame(NonConformity)
        for r in nc[_is(nc, "status", *OPEN_NC) & _is(nc, "priority", *URGENT)].head(3).to_dict(orient="records"):
            target = r["target_date"]
            has_target = target is not None and not pd.isna(target)
            add(
                f"Resolve Non-Conformity: {_text(r['nc_number'], 'NC-' + str(r['id']))}",
                f"Priority: {r['priority']}. Status: {r['status']}. "
                f"Target date: {target if has_target else 'Not set'}.",
                "high" if r["priority"] == "Critical" else "medium",
                pd.Timestamp(target).date().isoformat() if has_target else add_days_iso(self.today, 7),
                _text(r["responsible_person"], "Quality Manager"),
            )

        pmc = self.frame(PerformanceMonitoringControl)
        late = pmc[(_dates(pmc, "target_date") < self.ts_today) & ~_is(pmc, "doc_status", "Completed")]
        for r in late.head(2).to_dict(orient="records"):
            add(
                f"Review Overdue Performance Control: {_text(r['name_reports'], 'Untitled Control')}",
                f"Target date was due on {r['target_date']}. Current status: {_text(r['doc_status'], 'n/a')}.",
                "medium",
                add_days_iso(self.today, 5),
                _text(r["responsible_persons"], "Performance Manager"),
            )

        actions.sort(key=lambda a: PRIORITY_ORDER[a["priority"]], reverse=True)
        return actions[:10]

    # -----------------------------
    # Assemble
    # -----------------------------
    def build(self) -> dict:
        key_metrics: dict[str, Optional[dict]] = {}
        section_scores: dict[str, Optional[float]] = {}
        for name in SECTIONS:
            metrics, score = self._guard(name, getattr(self, name), (None, None))
            key_metrics[name] = metrics
            section_scores[name] = round(score, 2) if score is not None else None

        health = overall_health_score(section_scores, self.weights)
        return {
            "business_area": self.business_area,
            "generated_at": utcnow().isoformat(),
            "overall_health_score": health,
            "risk_level": risk_level(health),
            "trend_analysis": self._guard("trend_analysis", self.trend_analysis, None),
            "key_metrics": key_metrics,
            "section_scores": section_scores,
            "weights": dict(self.weights),
            "top_achievements": self._guard("top_achievements", self.top_achievements, []),
            "areas_needing_attention": self._guard("areas_needing_attention", self.areas_needing_attention, []),
            "critical_actions": self._guard("critical_actions", self.critical_actions, []),
            "unavailable_sections": self.unavailable,
        }


def build_management_report(
    db: Session,
    business_area: str,
    weights: Optional[dict[str, float]] = None,
    today: Optional[date] = None,
) -> dict:
    return ReportBuilder(db, business_area, weights=weights, today=today).build()


# =========================
# Operations summary
# =========================
PROGRESS_MODELS = (BusinessProcess, PerformanceMonitoringControl, BusinessDocument, QualityObjective)


def area_operations(db: Session, business_area: str) -> dict:
    """Overall progress and process challenge counts for one area.

    Progress is the mean of every recorded status percentage, clamped to
    0-100; rows without one are left out rather than counted as zero.
    """
    values = []
    for model in PROGRESS_MODELS:
        df = _to_frame(_load_rows(db, model, business_area), model)
        values.append(_num(df, "status_percentage").dropna().clip(0, 100))
    pct = pd.concat(values, ignore_index=True).astype(float)

    processes = _to_frame(_load_rows(db, BusinessProcess, business_area), BusinessProcess)
    return {
        "business_area": business_area,
        "overall_progress": int(round(pct.mean())) if not pct.empty else 0,
        "minor_challenges": _count(_is(processes, "progress", "Minor Challenges")),
        "major_challenges": _count(_is(processes, "progress", "Major Challenges")),
    }


def operations_summary(db: Session, business_areas: list[str]) -> list[dict]:
    return [area_operations(db, area) for area in business_areas]
