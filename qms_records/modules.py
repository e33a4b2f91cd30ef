"""Registry of record modules.

Each module is described by data rather than by its own routes: the ORM
model, the payload schema, which fields must be present, and which fields
are copied into history snapshots. ``routes_records.build_router`` and
``records.RecordStore`` serve every entry the same way.
"""
from dataclasses import dataclass
from typing import Callable, Optional, Type

from pydantic import BaseModel

from . import models_records as m
from . import schemas as s


@dataclass(frozen=True)
class RecordModule:
    slug: str
    entity_type: str
    label: str
    model: type
    schema: Type[BaseModel]
    required: tuple[str, ...]
    snapshot: tuple[str, ...]
    # "soft" keeps the row with deleted_at set, "hard" removes it
    deletion: str = "soft"
    derive: Optional[Callable[[object], None]] = None


def _product(a, b):
    if a is None or b is None:
        return None
    return int(a) * int(b)


def derive_risk_scores(row) -> None:
    row.inherent_risk_score = _product(row.inherent_risk_likeliness, row.inherent_risk_impact)
    row.residual_risk_overall_score = _product(row.residual_risk_likeliness, row.residual_risk_impact)


RISK_CONTROLS = RecordModule(
    slug="risk-management",
    entity_type="risk_control",
    label="Risk management control",
    model=m.RiskControl,
    schema=s.RiskControlIn,
    required=("process_name", "issue_description"),
    snapshot=("inherent_risk_score", "residual_risk_overall_score", "status", "control_progress"),
    derive=derive_risk_scores,
)

BUSINESS_DOCUMENTS = RecordModule(
    slug="business-documents",
    entity_type="business_document",
    label="Business document",
    model=m.BusinessDocument,
    schema=s.BusinessDocumentIn,
    required=("document_name",),
    snapshot=("doc_status", "status_percentage", "version"),
)

BUSINESS_PROCESSES = RecordModule(
    slug="business-processes",
    entity_type="business_process",
    label="Business process",
    model=m.BusinessProcess,
    schema=s.BusinessProcessIn,
    required=("process_name",),
    snapshot=("doc_status", "status_percentage", "priority"),
)

BUSINESS_IMPROVEMENTS = RecordModule(
    slug="business-improvements",
    entity_type="business_improvement",
    label="Business improvement",
    model=m.BusinessImprovement,
    schema=s.BusinessImprovementIn,
    required=("improvement_title", "description"),
    snapshot=("status", "status_percentage", "priority"),
)

QUALITY_OBJECTIVES = RecordModule(
    slug="business-quality-objectives",
    entity_type="quality_objective",
    label="Business quality objective",
    model=m.QualityObjective,
    schema=s.QualityObjectiveIn,
    required=("qms_main_objectives",),
    snapshot=("progress", "status_percentage"),
)

NON_CONFORMITIES = RecordModule(
    slug="non-conformities",
    entity_type="non_conformity",
    label="Non-conformity",
    model=m.NonConformity,
    schema=s.NonConformityIn,
    required=("nc_number", "description"),
    snapshot=("status", "priority"),
)

RECORD_KEEPING_SYSTEMS = RecordModule(
    slug="record-keeping-systems",
    entity_type="record_keeping_system",
    label="Record keeping system",
    model=m.RecordKeepingSystem,
    schema=s.RecordKeepingSystemIn,
    required=("system_name",),
    snapshot=("compliance_status", "status_percentage"),
)

THIRD_PARTY_EVALUATIONS = RecordModule(
    slug="third-party-evaluations",
    entity_type="third_party_evaluation",
    label="Third party evaluation",
    model=m.ThirdPartyEvaluation,
    schema=s.ThirdPartyEvaluationIn,
    required=("supplier_name",),
    snapshot=("evaluation_status", "evaluation_score", "status_percentage"),
)

PERFORMANCE_MONITORING = RecordModule(
    slug="performance-monitoring",
    entity_type="performance_monitoring_control",
    label="Performance monitoring control",
    model=m.PerformanceMonitoringControl,
    schema=s.PerformanceMonitoringIn,
    required=("name_reports",),
    snapshot=("doc_status", "status_percentage", "priority"),
)

CUSTOMER_FEEDBACK_SYSTEMS = RecordModule(
    slug="customer-feedback-systems",
    entity_type="customer_feedback_system",
    label="Customer feedback system",
    model=m.CustomerFeedbackSystem,
    schema=s.CustomerFeedbackSystemIn,
    required=("system_name",),
    snapshot=("status", "satisfaction_score", "response_rate"),
)

TRAINING_SESSIONS = RecordModule(
    slug="training-sessions",
    entity_type="training_session",
    label="Training session",
    model=m.TrainingSession,
    schema=s.TrainingSessionIn,
    required=("session_title",),
    snapshot=("status", "status_percentage"),
)

QMS_ASSESSMENTS = RecordModule(
    slug="qms-assessments",
    entity_type="qms_assessment",
    label="QMS assessment",
    model=m.QmsAssessment,
    schema=s.QmsAssessmentIn,
    required=("assessor_name", "assessment_date"),
    snapshot=("assessor_name", "assessment_date", "approved_by"),
)

MODULES: tuple[RecordModule, ...] = (
    RISK_CONTROLS,
    BUSINESS_DOCUMENTS,
    BUSINESS_PROCESSES,
    BUSINESS_IMPROVEMENTS,
    QUALITY_OBJECTIVES,
    NON_CONFORMITIES,
    RECORD_KEEPING_SYSTEMS,
    THIRD_PARTY_EVALUATIONS,
    PERFORMANCE_MONITORING,
    CUSTOMER_FEEDBACK_SYSTEMS,
    TRAINING_SESSIONS,
    QMS_ASSESSMENTS,
)

BY_SLUG = {module.slug: module for module in MODULES}
