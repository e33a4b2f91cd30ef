from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from qms_records import report
from qms_records.models_records import QualityObjectiveProgress, TrainingSession
from qms_records.modules import (
    BUSINESS_DOCUMENTS,
    BUSINESS_PROCESSES,
    NON_CONFORMITIES,
    PERFORMANCE_MONITORING,
    QUALITY_OBJECTIVES,
    RISK_CONTROLS,
    TRAINING_SESSIONS,
)
from qms_records.records import RecordStore
from qms_records.report import build_management_report, operations_summary, overall_health_score, risk_level

TODAY = date(2026, 3, 15)


def _risk(likeliness, impact, status="Open", name="Risk"):
    return {
        "process_name": name,
        "issue_description": "issue",
        "inherent_risk_likeliness": likeliness,
        "inherent_risk_impact": impact,
        "status": status,
    }


def _add(db, caller, module, payload):
    row, _ = RecordStore(db, module).create(caller, payload)
    return row


@pytest.mark.parametrize(
    "score, level",
    [(100, "green"), (80, "green"), (79.99, "yellow"), (60, "yellow"), (59.9, "red"), (0, "red")],
)
def test_risk_level_thresholds(score, level):
    assert risk_level(score) == level


def test_health_score_drops_unavailable_sections():
    weights = {"a": 0.5, "b": 0.3, "c": 0.2}
    assert overall_health_score({"a": 80.0, "b": 50.0, "c": None}, weights) == pytest.approx(68.75)
    assert overall_health_score({"a": None, "b": None, "c": None}, weights) == 0.0
    assert overall_health_score({"a": 150.0}, {"a": 1.0}) == 100.0


def test_empty_area_report(db, make_caller):
    make_caller("lead@example.com", ["Operations"])
    data = build_management_report(db, "Operations", today=TODAY)

    assert data["unavailable_sections"] == []
    # only risk management and operational excellence score when nothing is recorded
    assert data["section_scores"]["risk_management"] == 100.0
    assert data["section_scores"]["operational_excellence"] == 100.0
    assert data["overall_health_score"] == pytest.approx(30.0)
    assert data["risk_level"] == "red"
    assert data["trend_analysis"]["trend"] == "stable"
    assert data["critical_actions"] == []


def test_risk_section_buckets_and_deleted_rows(db, make_caller):
    caller = make_caller("lead@example.com", ["Operations"])
    _add(db, caller, RISK_CONTROLS, _risk(4, 5))  # 20 high
    _add(db, caller, RISK_CONTROLS, _risk(3, 3))  # 9 medium
    _add(db, caller, RISK_CONTROLS, _risk(1, 2, status="Closed"))  # 2 low
    gone = _add(db, caller, RISK_CONTROLS, _risk(5, 5))
    RecordStore(db, RISK_CONTROLS).soft_delete(caller, gone.id)

    risk = build_management_report(db, "Operations", today=TODAY)["key_metrics"]["risk_management"]

    assert risk["total_risks"] == 3
    assert risk["risk_distribution"] == {"high": 1, "medium": 1, "low": 1}
    assert risk["mitigation_progress"] == pytest.approx(100 / 3)
    assert risk["average_impact_level_score"] == pytest.approx(31 / 3)


def test_report_only_reads_requested_area(db, make_caller):
    ops = make_caller("ops@example.com", ["Operations"])
    fin = make_caller("fin@example.com", ["Finance"])
    _add(db, ops, RISK_CONTROLS, _risk(5, 5))
    _add(db, fin, RISK_CONTROLS, _risk(5, 4))
    _add(db, fin, RISK_CONTROLS, _risk(5, 3))

    data = build_management_report(db, "Operations", today=TODAY)
    assert data["key_metrics"]["risk_management"]["total_risks"] == 1
    assert data["section_scores"]["risk_management"] == 90.0


def test_failed_section_is_reported_unavailable(db, make_caller, monkeypatch):
    caller = make_caller("lead@example.com", ["Operations"])
    _add(db, caller, QUALITY_OBJECTIVES, {"qms_main_objectives": "Objective", "status_percentage": 90})
    _add(db, caller, TRAINING_SESSIONS, {"session_title": "ISO 9001 basics", "status_percentage": 10})

    real_load = report._load_rows

    def flaky(session, model, business_area):
        if model is TrainingSession:
            raise OperationalError("SELECT", {}, Exception("table locked"))
        return real_load(session, model, business_area)

    monkeypatch.setattr(report, "_load_rows", flaky)
    data = build_management_report(db, "Operations", today=TODAY)

    assert data["unavailable_sections"] == ["resource_management"]
    assert data["key_metrics"]["resource_management"] is None
    assert data["section_scores"]["resource_management"] is None
    assert data["key_metrics"]["quality_objectives"]["average_progress"] == 90.0

    # quality 90, risk 100 and operational 100 remain; the training weight is dropped
    assert data["overall_health_score"] == pytest.approx(round((0.25 * 90 + 0.15 * 100 + 0.15 * 100) / 0.97, 2))


def test_custom_weights(db, make_caller):
    caller = make_caller("lead@example.com", ["Operations"])
    _add(db, caller, QUALITY_OBJECTIVES, {"qms_main_objectives": "Objective", "status_percentage": 72})

    weights = {name: 0.0 for name in report.SECTIONS}
    weights["quality_objectives"] = 1.0
    data = build_management_report(db, "Operations", weights=weights, today=TODAY)

    assert data["overall_health_score"] == 72.0
    assert data["risk_level"] == "yellow"


@pytest.mark.parametrize(
    "today, current, previous, trend",
    [
        (date(2026, 3, 15), (2026, 3, 70), (2026, 2, 50), "improving"),
        (date(2026, 1, 10), (2026, 1, 40), (2025, 12, 60), "declining"),
        (date(2026, 3, 15), (2026, 3, 52), (2026, 2, 50), "stable"),
    ],
)
def test_trend_compares_calendar_months(db, make_caller, today, current, previous, trend):
    caller = make_caller("lead@example.com", ["Operations"])
    obj = _add(db, caller, QUALITY_OBJECTIVES, {"qms_main_objectives": "Objective"})
    for year, month, pct in (current, previous):
        db.add(
            QualityObjectiveProgress(
                objective_id=obj.id, year=year, month=month, percentage=pct,
                created_at=obj.created_at, updated_at=obj.created_at,
            )
        )
    db.commit()

    result = build_management_report(db, "Operations", today=today)["trend_analysis"]
    assert result["current_month"] == current[2]
    assert result["previous_month"] == previous[2]
    assert result["trend"] == trend


def test_critical_actions_are_capped_and_sorted(db, make_caller):
    caller = make_caller("lead@example.com", ["Operations"])
    for i in range(6):
        _add(db, caller, RISK_CONTROLS, _risk(5, 4, name=f"Risk {i}"))
    for i in range(4):
        _add(db, caller, BUSINESS_PROCESSES, {"process_name": f"P{i}", "priority": "High", "status_percentage": 10})
    _add(db, caller, BUSINESS_DOCUMENTS, {"document_name": "Manual", "review_date": "2025-01-01", "doc_status": "Draft"})
    _add(db, caller, NON_CONFORMITIES, {"nc_number": "NC-1", "description": "x", "status": "Open", "priority": "Critical"})

    data = build_management_report(db, "Operations", today=TODAY)
    actions = data["critical_actions"]

    assert len(actions) == 10
    priorities = [a["priority"] for a in actions]
    assert priorities == sorted(priorities, key=lambda p: report.PRIORITY_ORDER[p], reverse=True)
    # 5 risks, 1 overdue document, 1 critical NC
    assert priorities.count("high") == 7
    assert actions[0]["deadline"] == "2026-03-22"

    assert len(data["areas_needing_attention"]) <= 5
    assert any("high-risk items" in s for s in data["areas_needing_attention"])


def test_top_achievements(db, make_caller):
    caller = make_caller("lead@example.com", ["Operations"])
    _add(db, caller, QUALITY_OBJECTIVES, {"qms_main_objectives": "O", "progress": "Completed", "status_percentage": 95})
    _add(db, caller, NON_CONFORMITIES, {"nc_number": "NC-1", "description": "x", "status": "Closed"})
    _add(db, caller, RISK_CONTROLS, _risk(4, 4, status="Closed"))

    achievements = build_management_report(db, "Operations", today=TODAY)["top_achievements"]
    assert "Successfully mitigated 1 high-risk items" in achievements
    assert "Achieved 1 quality objectives successfully" in achievements
    assert "Successfully resolved 1 non-conformities" in achievements
    assert len(achievements) <= 5


def test_soft_deleted_objectives_do_not_count_towards_completion(db, make_caller):
    caller = make_caller("lead@example.com", ["Operations"])
    for i in range(10):
        _add(db, caller, QUALITY_OBJECTIVES, {"qms_main_objectives": f"Objective {i}", "status_percentage": 40})
    for i in range(2):
        done = _add(db, caller, QUALITY_OBJECTIVES, {"qms_main_objectives": f"Done {i}", "status_percentage": 100})
        RecordStore(db, QUALITY_OBJECTIVES).soft_delete(caller, done.id)

    quality = build_management_report(db, "Operations", today=TODAY)["key_metrics"]["quality_objectives"]
    assert quality["total_objectives"] == 10
    assert quality["completion_rate"] == pytest.approx(40.0)


def test_operations_summary_per_area(db, make_caller):
    caller = make_caller("lead@example.com", ["Finance", "Operations"])
    _add(db, caller, BUSINESS_PROCESSES, {"process_name": "Sales", "progress": "Minor Challenges", "status_percentage": 80})
    _add(db, caller, BUSINESS_PROCESSES, {"process_name": "Billing", "progress": "Major Challenges", "status_percentage": 30})
    _add(db, caller, BUSINESS_PROCESSES, {"process_name": "Hiring", "progress": "Minor Challenges"})
    _add(db, caller, BUSINESS_DOCUMENTS, {"document_name": "Manual", "status_percentage": 50})
    _add(db, caller, PERFORMANCE_MONITORING, {"name_reports": "KPI pack", "status_percentage": 45})
    gone = _add(db, caller, QUALITY_OBJECTIVES, {"qms_main_objectives": "Old", "status_percentage": 0})
    RecordStore(db, QUALITY_OBJECTIVES).soft_delete(caller, gone.id)

    # every row lands in Finance, the primary area
    summary = operations_summary(db, ["Finance", "Operations"])
    assert summary == [
        {"business_area": "Finance", "overall_progress": 51, "minor_challenges": 2, "major_challenges": 1},
        {"business_area": "Operations", "overall_progress": 0, "minor_challenges": 0, "major_challenges": 0},
    ]


# -----------------------------
# HTTP surface
# -----------------------------
def test_report_endpoint_scoping(client, register):
    headers = register("lead@example.com", "Operations")
    register("fin@example.com", "Finance")

    ok = client.get("/api/management-report", headers=headers)
    assert ok.status_code == 200
    assert ok.json()["success"] is True
    assert ok.json()["data"]["business_area"] == "Operations"

    explicit = client.get("/api/management-report?businessArea=Operations", headers=headers)
    assert explicit.status_code == 200

    assert client.get("/api/management-report?businessArea=Finance", headers=headers).status_code == 403
    assert client.get("/api/management-report").status_code == 401


def test_report_pdf(client, register):
    headers = register("lead@example.com", "Operations")
    client.post(
        "/api/risk-management",
        json={"process_name": "Sales", "issue_description": "x", "inherent_risk_likeliness": 5, "inherent_risk_impact": 5},
        headers=headers,
    )

    resp = client.get("/api/management-report/pdf", headers=headers)
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/pdf"
    assert resp.content.startswith(b"%PDF")


def test_operations_summary_endpoint(client, register):
    headers = register("lead@example.com", "Operations")
    register("fin@example.com", "Finance")
    client.post(
        "/api/business-processes",
        json={"process_name": "Sales", "progress": "Major Challenges", "status_percentage": 60},
        headers=headers,
    )

    resp = client.get("/api/operations-summary", headers=headers)
    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "data": [{"business_area": "Operations", "overall_progress": 60, "minor_challenges": 0, "major_challenges": 1}],
    }
    assert client.get("/api/operations-summary").status_code == 401
