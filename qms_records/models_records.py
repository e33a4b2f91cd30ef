from sqlalchemy import (
    Column, Integer, BigInteger, String, Float, Date, DateTime, Text, JSON, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import declared_attr, relationship

from .database import Base


class ScopedRecordMixin:
    id = Column(Integer, primary_key=True, index=True)

    @declared_attr
    def business_area(cls):
        return Column(String(100), ForeignKey("business_areas.name"), nullable=False, index=True)

    sub_business_area = Column(String(100), nullable=True)

    # attachment metadata from the upload service; never inspected here
    file_url = Column(String(1024), nullable=True)
    file_name = Column(String(255), nullable=True)
    file_size = Column(BigInteger, nullable=True)
    file_type = Column(String(100), nullable=True)

    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)
    deleted_at = Column(DateTime, nullable=True, index=True)

    @declared_attr
    def deleted_by(cls):
        return Column(Integer, ForeignKey("users.id"), nullable=True)


class RiskControl(ScopedRecordMixin, Base):
    __tablename__ = "racm_matrix"

    process_name = Column(String(255), nullable=False)
    activity_description = Column(Text, nullable=True)
    issue_description = Column(Text, nullable=False)
    issue_type = Column(String(100), nullable=True)

    # 1-5 scales; scores are likeliness * impact
    inherent_risk_likeliness = Column(Integer, nullable=True)
    inherent_risk_impact = Column(Integer, nullable=True)
    inherent_risk_score = Column(Integer, nullable=True)

    control_description = Column(Text, nullable=True)
    control_type = Column(String(50), nullable=True)          # Preventive | Detective | Corrective
    control_owner = Column(String(255), nullable=True)
    control_effectiveness = Column(String(50), nullable=True)  # High | Medium | Low
    control_progress = Column(Float, nullable=True)
    control_target_date = Column(Date, nullable=True)

    residual_risk_likeliness = Column(Integer, nullable=True)
    residual_risk_impact = Column(Integer, nullable=True)
    residual_risk_overall_score = Column(Integer, nullable=True)

    status = Column(String(50), nullable=True)                 # Open | Under Review | Closed
    doc_status = Column(String(50), nullable=True)


class BusinessDocument(ScopedRecordMixin, Base):
    __tablename__ = "business_document_register"

    document_name = Column(String(255), nullable=False)
    name_and_numbering = Column(String(255), nullable=True)
    document_type = Column(String(100), nullable=True)
    version = Column(String(32), nullable=True)
    progress = Column(String(50), nullable=True)
    doc_status = Column(String(50), nullable=True)
    status_percentage = Column(Float, nullable=True)
    priority = Column(String(32), nullable=True)
    target_date = Column(Date, nullable=True)
    review_date = Column(Date, nullable=True)
    document_owner = Column(String(255), nullable=True)
    remarks = Column(Text, nullable=True)


class BusinessProcess(ScopedRecordMixin, Base):
    __tablename__ = "business_process_register"

    process_name = Column(String(255), nullable=False)
    name_and_numbering = Column(String(255), nullable=True)
    process_category = Column(String(100), nullable=True)
    process_owner = Column(String(255), nullable=True)
    version = Column(String(32), nullable=True)
    progress = Column(String(50), nullable=True)
    doc_status = Column(String(50), nullable=True)
    status_percentage = Column(Float, nullable=True)
    priority = Column(String(32), nullable=True)
    target_date = Column(Date, nullable=True)
    review_date = Column(Date, nullable=True)
    remarks = Column(Text, nullable=True)


class BusinessImprovement(ScopedRecordMixin, Base):
    __tablename__ = "business_improvements"

    improvement_title = Column(String(255), nullable=False)
    improvement_type = Column(String(100), nullable=True)
    description = Column(Text, nullable=False)
    business_case = Column(Text, nullable=True)
    expected_benefits = Column(Text, nullable=True)
    implementation_plan = Column(Text, nullable=True)
    success_criteria = Column(Text, nullable=True)
    responsible_person = Column(String(255), nullable=True)
    start_date = Column(Date, nullable=True)
    target_completion_date = Column(Date, nullable=True)
    actual_completion_date = Column(Date, nullable=True)
    status = Column(String(50), nullable=True)                 # Planned | In Progress | Completed
    priority = Column(String(32), nullable=True)
    budget_allocated = Column(Float, nullable=True)
    actual_cost = Column(Float, nullable=True)
    roi_calculation = Column(Text, nullable=True)
    lessons_learned = Column(Text, nullable=True)
    next_steps = Column(Text, nullable=True)
    related_processes = Column(Text, nullable=True)
    status_percentage = Column(Float, nullable=True)
    doc_status = Column(String(50), nullable=True)
    progress = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)


class QualityObjective(ScopedRecordMixin, Base):
    __tablename__ = "business_quality_objectives"

    category = Column(String(100), nullable=True)
    qms_main_objectives = Column(String(255), nullable=False)
    qms_objective_description = Column(Text, nullable=True)
    kpi_or_sla_targets = Column(Text, nullable=True)
    performance_monitoring = Column(Text, nullable=True)
    proof_of_measuring = Column(Text, nullable=True)
    proof_of_reporting = Column(Text, nullable=True)
    frequency = Column(String(50), nullable=True)
    responsible_person_team = Column(String(255), nullable=True)
    review_date = Column(Date, nullable=True)
    progress = Column(String(50), nullable=True)               # Completed | On-Track | Minor/Major Challenges
    status_percentage = Column(Float, nullable=True)

    progress_entries = relationship(
        "QualityObjectiveProgress", back_populates="objective", passive_deletes=True
    )


class QualityObjectiveProgress(Base):
    __tablename__ = "business_quality_objective_progress"
    __table_args__ = (
        UniqueConstraint("objective_id", "month", "year", name="uq_objective_month_year"),
    )

    id = Column(Integer, primary_key=True, index=True)
    objective_id = Column(
        Integer, ForeignKey("business_quality_objectives.id", ondelete="CASCADE"), nullable=False, index=True
    )
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    percentage = Column(Float, nullable=False)
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    objective = relationship("QualityObjective", back_populates="progress_entries")


class NonConformity(ScopedRecordMixin, Base):
    __tablename__ = "non_conformities"

    nc_number = Column(String(64), nullable=False)
    nc_type = Column(String(100), nullable=True)
    description = Column(Text, nullable=False)
    root_cause = Column(Text, nullable=True)
    corrective_action = Column(Text, nullable=True)
    responsible_person = Column(String(255), nullable=True)
    target_date = Column(Date, nullable=True)
    completion_date = Column(Date, nullable=True)
    actual_resolution_date = Column(Date, nullable=True)
    status = Column(String(50), nullable=True)                 # Open | In Progress | Closed
    priority = Column(String(32), nullable=True)               # Critical | High | Medium | Low
    impact_level = Column(String(50), nullable=True)
    verification_method = Column(Text, nullable=True)
    effectiveness_review = Column(Text, nullable=True)
    lessons_learned = Column(Text, nullable=True)
    related_documents = Column(Text, nullable=True)


class RecordKeepingSystem(ScopedRecordMixin, Base):
    __tablename__ = "record_keeping_systems"

    record_type = Column(String(100), nullable=True)
    system_name = Column(String(255), nullable=False)
    system_description = Column(Text, nullable=True)
    retention_period = Column(String(100), nullable=True)
    storage_location = Column(String(255), nullable=True)
    access_controls = Column(Text, nullable=True)
    backup_procedures = Column(Text, nullable=True)
    disposal_procedures = Column(Text, nullable=True)
    compliance_status = Column(String(50), nullable=True)      # Compliant | Non-Compliant | Pending
    last_audit_date = Column(Date, nullable=True)
    next_audit_date = Column(Date, nullable=True)
    audit_findings = Column(Text, nullable=True)
    corrective_actions = Column(Text, nullable=True)
    responsible_person = Column(String(255), nullable=True)
    status_percentage = Column(Float, nullable=True)
    doc_status = Column(String(50), nullable=True)
    progress = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)


class ThirdPartyEvaluation(ScopedRecordMixin, Base):
    __tablename__ = "third_party_evaluations"

    supplier_name = Column(String(255), nullable=False)
    evaluation_system_in_place = Column(String(16), nullable=True)
    document_reference = Column(String(255), nullable=True)
    evaluation_status = Column(String(50), nullable=True)      # Pending | Completed
    evaluation_score = Column(Float, nullable=True)
    last_evaluation_date = Column(Date, nullable=True)
    next_evaluation_date = Column(Date, nullable=True)
    status_percentage = Column(Float, nullable=True)
    doc_status = Column(String(50), nullable=True)
    progress = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)


class PerformanceMonitoringControl(ScopedRecordMixin, Base):
    __tablename__ = "performance_monitoring_controls"

    name_reports = Column(String(255), nullable=False)
    doc_type = Column(String(100), nullable=True)
    priority = Column(String(32), nullable=True)
    doc_status = Column(String(50), nullable=True)
    progress = Column(String(50), nullable=True)
    status_percentage = Column(Float, nullable=True)
    target_date = Column(Date, nullable=True)
    proof = Column(Text, nullable=True)
    frequency = Column(String(50), nullable=True)
    responsible_persons = Column(String(255), nullable=True)
    remarks = Column(Text, nullable=True)


class CustomerFeedbackSystem(ScopedRecordMixin, Base):
    __tablename__ = "customer_feedback_systems"

    system_name = Column(String(255), nullable=False)
    has_feedback_system = Column(String(16), nullable=True)
    document_reference = Column(String(255), nullable=True)
    last_review_date = Column(Date, nullable=True)
    status = Column(String(50), nullable=True)                 # Active | Inactive
    satisfaction_score = Column(Float, nullable=True)          # 0-100
    response_rate = Column(Float, nullable=True)               # 0-100
    status_percentage = Column(Float, nullable=True)
    doc_status = Column(String(50), nullable=True)
    progress = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)


class TrainingSession(ScopedRecordMixin, Base):
    __tablename__ = "training_sessions"

    session_title = Column(String(255), nullable=False)
    trainer = Column(String(255), nullable=True)
    session_date = Column(Date, nullable=True)
    attendees = Column(Integer, nullable=True)
    status = Column(String(50), nullable=True)
    status_percentage = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)


class QmsAssessment(ScopedRecordMixin, Base):
    __tablename__ = "qms_assessments"

    assessor_name = Column(String(100), nullable=False)
    assessment_date = Column(Date, nullable=False)
    # checklist rows: section, clause_reference, item_number, item_description, status (C|NC|OFI|NA), comment
    items = Column(JSON, nullable=True)
    conducted_by = Column(String(100), nullable=True)
    conducted_date = Column(Date, nullable=True)
    approved_by = Column(String(100), nullable=True)
    approved_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)


class ProcessDocumentLink(Base):
    __tablename__ = "business_process_document_links"
    __table_args__ = (
        UniqueConstraint("business_process_id", "business_document_id", name="uq_process_document"),
    )

    id = Column(Integer, primary_key=True, index=True)
    business_process_id = Column(
        Integer, ForeignKey("business_process_register.id", ondelete="CASCADE"), nullable=False, index=True
    )
    business_document_id = Column(
        Integer, ForeignKey("business_document_register.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False)
