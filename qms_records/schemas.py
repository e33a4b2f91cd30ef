from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional
from datetime import date


# ---------- Base ----------
class RecordIn(BaseModel):
    """Fields every record accepts. Unknown keys are ignored."""

    business_area: Optional[str] = None
    sub_business_area: Optional[str] = None

    file_url: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = Field(default=None, ge=0)
    file_type: Optional[str] = None

    class Config:
        extra = "ignore"

    @field_validator("*", mode="before")
    @classmethod
    def _empty_to_none(cls, v):
        # forms post "" for untouched inputs
        if isinstance(v, str) and v.strip() == "":
            return None
        return v


Percentage = Optional[float]


# ---------- Risk management ----------
class RiskControlIn(RecordIn):
    process_name: Optional[str] = None
    activity_description: Optional[str] = None
    issue_description: Optional[str] = None
    issue_type: Optional[str] = None

    inherent_risk_likeliness: Optional[int] = Field(default=None, ge=1, le=5)
    inherent_risk_impact: Optional[int] = Field(default=None, ge=1, le=5)

    control_description: Optional[str] = None
    control_type: Optional[str] = None
    control_owner: Optional[str] = None
    control_effectiveness: Optional[str] = None
    control_progress: Percentage = Field(default=None, ge=0, le=100)
    control_target_date: Optional[date] = None

    residual_risk_likeliness: Optional[int] = Field(default=None, ge=1, le=5)
    residual_risk_impact: Optional[int] = Field(default=None, ge=1, le=5)

    status: Optional[str] = None
    doc_status: Optional[str] = None


# ---------- Documents & processes ----------
class BusinessDocumentIn(RecordIn):
    document_name: Optional[str] = None
    name_and_numbering: Optional[str] = None
    document_type: Optional[str] = None
    version: Optional[str] = None
    progress: Optional[str] = None
    doc_status: Optional[str] = None
    status_percentage: Percentage = Field(default=None, ge=0, le=100)
    priority: Optional[str] = None
    target_date: Optional[date] = None
    review_date: Optional[date] = None
    document_owner: Optional[str] = None
    remarks: Optional[str] = None


class BusinessProcessIn(RecordIn):
    process_name: Optional[str] = None
    name_and_numbering: Optional[str] = None
    process_category: Optional[str] = None
    process_owner: Optional[str] = None
    version: Optional[str] = None
    progress: Optional[str] = None
    doc_status: Optional[str] = None
    status_percentage: Percentage = Field(default=None, ge=0, le=100)
    priority: Optional[str] = None
    target_date: Optional[date] = None
    review_date: Optional[date] = None
    remarks: Optional[str] = None


# ---------- Improvements & objectives ----------
class BusinessImprovementIn(RecordIn):
    improvement_title: Optional[str] = None
    improvement_type: Optional[str] = None
    description: Optional[str] = None
    business_case: Optional[str] = None
    expected_benefits: Optional[str] = None
    implementation_plan: Optional[str] = None
    success_criteria: Optional[str] = None
    responsible_person: Optional[str] = None
    start_date: Optional[date] = None
    target_completion_date: Optional[date] = None
    actual_completion_date: Optional[date] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    budget_allocated: Optional[float] = None
    actual_cost: Optional[float] = None
    roi_calculation: Optional[str] = None
    lessons_learned: Optional[str] = None
    next_steps: Optional[str] = None
    related_processes: Optional[str] = None
    status_percentage: Percentage = Field(default=None, ge=0, le=100)
    doc_status: Optional[str] = None
    progress: Optional[str] = None
    notes: Optional[str] = None


class QualityObjectiveIn(RecordIn):
    category: Optional[str] = None
    qms_main_objectives: Optional[str] = None
    qms_objective_description: Optional[str] = None
    kpi_or_sla_targets: Optional[str] = None
    performance_monitoring: Optional[str] = None
    proof_of_measuring: Optional[str] = None
    proof_of_reporting: Optional[str] = None
    frequency: Optional[str] = None
    responsible_person_team: Optional[str] = None
    review_date: Optional[date] = None
    progress: Optional[str] = None
    status_percentage: Percentage = Field(default=None, ge=0, le=100)


class ProgressEntryIn(BaseModel):
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=1900, le=9999)
    percentage: float = Field(ge=0, le=100)
    notes: Optional[str] = None


# ---------- Operational records ----------
class NonConformityIn(RecordIn):
    nc_number: Optional[str] = None
    nc_type: Optional[str] = None
    description: Optional[str] = None
    root_cause: Optional[str] = None
    corrective_action: Optional[str] = None
    responsible_person: Optional[str] = None
    target_date: Optional[date] = None
    completion_date: Optional[date] = None
    actual_resolution_date: Optional[date] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    impact_level: Optional[str] = None
    verification_method: Optional[str] = None
    effectiveness_review: Optional[str] = None
    lessons_learned: Optional[str] = None
    related_documents: Optional[str] = None


class RecordKeepingSystemIn(RecordIn):
    record_type: Optional[str] = None
    system_name: Optional[str] = None
    system_description: Optional[str] = None
    retention_period: Optional[str] = None
    storage_location: Optional[str] = None
    access_controls: Optional[str] = None
    backup_procedures: Optional[str] = None
    disposal_procedures: Optional[str] = None
    compliance_status: Optional[str] = None
    last_audit_date: Optional[date] = None
    next_audit_date: Optional[date] = None
    audit_findings: Optional[str] = None
    corrective_actions: Optional[str] = None
    responsible_person: Optional[str] = None
    status_percentage: Percentage = Field(default=None, ge=0, le=100)
    doc_status: Optional[str] = None
    progress: Optional[str] = None
    notes: Optional[str] = None


class ThirdPartyEvaluationIn(RecordIn):
    supplier_name: Optional[str] = None
    evaluation_system_in_place: Optional[str] = None
    document_reference: Optional[str] = None
    evaluation_status: Optional[str] = None
    evaluation_score: Percentage = Field(default=None, ge=0, le=100)
    last_evaluation_date: Optional[date] = None
    next_evaluation_date: Optional[date] = None
    status_percentage: Percentage = Field(default=None, ge=0, le=100)
    doc_status: Optional[str] = None
    progress: Optional[str] = None
    notes: Optional[str] = None


class PerformanceMonitoringIn(RecordIn):
    name_reports: Optional[str] = None
    doc_type: Optional[str] = None
    priority: Optional[str] = None
    doc_status: Optional[str] = None
    progress: Optional[str] = None
    status_percentage: Percentage = Field(default=None, ge=0, le=100)
    target_date: Optional[date] = None
    proof: Optional[str] = None
    frequency: Optional[str] = None
    responsible_persons: Optional[str] = None
    remarks: Optional[str] = None


class CustomerFeedbackSystemIn(RecordIn):
    system_name: Optional[str] = None
    has_feedback_system: Optional[str] = None
    document_reference: Optional[str] = None
    last_review_date: Optional[date] = None
    status: Optional[str] = None
    satisfaction_score: Percentage = Field(default=None, ge=0, le=100)
    response_rate: Percentage = Field(default=None, ge=0, le=100)
    status_percentage: Percentage = Field(default=None, ge=0, le=100)
    doc_status: Optional[str] = None
    progress: Optional[str] = None
    notes: Optional[str] = None


class TrainingSessionIn(RecordIn):
    session_title: Optional[str] = None
    trainer: Optional[str] = None
    session_date: Optional[date] = None
    attendees: Optional[int] = Field(default=None, ge=0)
    status: Optional[str] = None
    status_percentage: Percentage = Field(default=None, ge=0, le=100)
    notes: Optional[str] = None


# ---------- QMS assessments ----------
class AssessmentItemIn(BaseModel):
    section: str
    clause_reference: str
    item_number: str
    item_description: str
    status: Literal["C", "NC", "OFI", "NA"]
    comment: Optional[str] = None


class QmsAssessmentIn(RecordIn):
    assessor_name: Optional[str] = None
    assessment_date: Optional[date] = None
    items: Optional[list[AssessmentItemIn]] = None
    conducted_by: Optional[str] = None
    conducted_date: Optional[date] = None
    approved_by: Optional[str] = None
    approved_date: Optional[date] = None
    notes: Optional[str] = None
