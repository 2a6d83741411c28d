"""Pre-defined report configurations.

Templates are static configuration: the service never constructs one, it only
turns a template plus caller overrides into an :class:`ExportConfig`.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

from wasilah.data.models import EntityType, ExportConfig, ExportFormat


@dataclass(frozen=True)
class ReportTemplate:
    id: str
    name: str
    description: str
    category: str
    entity_type: EntityType
    format: ExportFormat
    config: dict[str, Any] = field(default_factory=dict)

    def to_config(self, **overrides: Any) -> ExportConfig:
        return build_config_from_template(self, overrides)


REPORT_TEMPLATES: tuple[ReportTemplate, ...] = (
    # Financial
    ReportTemplate(
        id="financial-payments-summary",
        name="Payments Summary Report",
        description="Complete overview of all payments, disbursements, and holds",
        category="Financial",
        entity_type=EntityType.PAYMENTS,
        format=ExportFormat.EXCEL,
        config={
            "includeColumns": [
                "id", "project", "ngo", "amount", "status",
                "disbursedAt", "method", "approvedBy",
            ],
            "includeMetadata": True,
        },
    ),
    ReportTemplate(
        id="financial-disbursement-history",
        name="Disbursement History",
        description="Historical record of all fund disbursements",
        category="Financial",
        entity_type=EntityType.PAYMENTS,
        format=ExportFormat.CSV,
        config={
            "includeColumns": ["disbursedAt", "project", "ngo", "amount", "milestone"],
            "filters": {"status": ["completed"]},
            "sortBy": "disbursedAt",
            "sortOrder": "desc",
        },
    ),
    ReportTemplate(
        id="financial-holds-report",
        name="Payment Holds Report",
        description="All payments currently on hold with reasons",
        category="Financial",
        entity_type=EntityType.PAYMENTS,
        format=ExportFormat.PDF,
        config={
            "includeColumns": ["project", "amount", "status", "approvedBy", "disbursedAt"],
            "filters": {"status": ["hold", "pending_review"]},
        },
    ),
    # Projects
    ReportTemplate(
        id="projects-active",
        name="Active Projects Report",
        description="All currently active projects with key metrics",
        category="Projects",
        entity_type=EntityType.PROJECTS,
        format=ExportFormat.EXCEL,
        config={
            "includeColumns": [
                "id", "name", "ngo", "status", "budget", "spent",
                "startDate", "endDate", "beneficiaries", "sdgs",
            ],
            "filters": {"status": ["active", "in_progress"]},
        },
    ),
    ReportTemplate(
        id="projects-impact",
        name="Impact Metrics Report",
        description="Project outcomes and impact data",
        category="Projects",
        entity_type=EntityType.PROJECTS,
        format=ExportFormat.PDF,
        config={
            "includeColumns": [
                "name", "ngo", "beneficiaries", "impactScore", "progress", "sdgs",
            ],
            "includeMetadata": True,
        },
    ),
    ReportTemplate(
        id="projects-sdg-alignment",
        name="SDG Alignment Report",
        description="Projects mapped to UN Sustainable Development Goals",
        category="Projects",
        entity_type=EntityType.PROJECTS,
        format=ExportFormat.EXCEL,
        config={"includeColumns": ["name", "ngo", "sdgs", "category", "budget", "status"]},
    ),
    # NGOs
    ReportTemplate(
        id="ngo-directory",
        name="NGO Directory Export",
        description="Complete directory of registered NGOs",
        category="NGOs",
        entity_type=EntityType.NGOS,
        format=ExportFormat.EXCEL,
        config={
            "includeColumns": [
                "id", "name", "registrationNumber", "category", "location",
                "email", "phone", "projectCount", "verified",
            ],
        },
    ),
    ReportTemplate(
        id="ngo-vetting-status",
        name="NGO Vetting Status Report",
        description="Current vetting status of all NGO applications",
        category="NGOs",
        entity_type=EntityType.NGOS,
        format=ExportFormat.CSV,
        config={
            "includeColumns": ["name", "registrationNumber", "status", "verified", "founded"],
            "filters": {"status": ["pending", "under_review", "approved", "rejected"]},
        },
    ),
    ReportTemplate(
        id="ngo-performance",
        name="NGO Performance Report",
        description="Performance metrics and ratings of partner NGOs",
        category="NGOs",
        entity_type=EntityType.NGOS,
        format=ExportFormat.PDF,
        config={
            "includeColumns": ["name", "projectCount", "volunteerCount", "rating", "impactScore"],
            "filters": {"status": ["active"]},
            "sortBy": "rating",
            "sortOrder": "desc",
        },
    ),
    # Volunteers
    ReportTemplate(
        id="volunteers-active",
        name="Active Volunteers Report",
        description="All active volunteers with skills and hours",
        category="Volunteers",
        entity_type=EntityType.VOLUNTEERS,
        format=ExportFormat.EXCEL,
        config={
            "includeColumns": [
                "id", "name", "email", "city", "skills",
                "totalHours", "projectsCompleted", "joinedAt",
            ],
            "filters": {"status": ["active"]},
        },
    ),
    ReportTemplate(
        id="volunteers-hours",
        name="Volunteer Hours Report",
        description="Volunteer hours logged across projects",
        category="Volunteers",
        entity_type=EntityType.VOLUNTEERS,
        format=ExportFormat.CSV,
        config={
            "includeColumns": ["name", "totalHours", "projectsCompleted", "lastActivity"],
            "sortBy": "totalHours",
            "sortOrder": "desc",
        },
    ),
    # Opportunities
    ReportTemplate(
        id="opportunities-open",
        name="Open Opportunities Report",
        description="Currently open volunteer opportunities",
        category="Opportunities",
        entity_type=EntityType.OPPORTUNITIES,
        format=ExportFormat.PDF,
        config={
            "includeColumns": [
                "title", "ngo", "location", "positions", "filled", "applicants", "startDate",
            ],
            "filters": {"status": ["open", "active"]},
        },
    ),
    # Audit
    ReportTemplate(
        id="audit-log-export",
        name="Audit Log Export",
        description="Complete audit trail of platform actions",
        category="Audit",
        entity_type=EntityType.AUDIT_LOGS,
        format=ExportFormat.CSV,
        config={
            "includeColumns": [
                "timestamp", "user", "action", "resource", "resourceId", "ipAddress", "success",
            ],
            "sortBy": "timestamp",
            "sortOrder": "desc",
        },
    ),
    ReportTemplate(
        id="audit-compliance",
        name="Compliance Report",
        description="Compliance checks and review outcomes",
        category="Audit",
        entity_type=EntityType.AUDIT_LOGS,
        format=ExportFormat.PDF,
        config={
            "includeColumns": ["timestamp", "user", "action", "details", "success"],
            "includeMetadata": True,
        },
    ),
    # Cases
    ReportTemplate(
        id="cases-open",
        name="Open Cases Report",
        description="All open support and dispute cases",
        category="Cases",
        entity_type=EntityType.CASES,
        format=ExportFormat.EXCEL,
        config={
            "includeColumns": [
                "caseId", "type", "priority", "status",
                "assignee", "createdDate", "lastUpdate", "escalated",
            ],
            "filters": {"status": ["open", "escalated", "pending"]},
        },
    ),
)


def get_template(template_id: str) -> ReportTemplate:
    """Look up a template by id, raising ``KeyError`` if unknown."""
    for template in REPORT_TEMPLATES:
        if template.id == template_id:
            return template
    raise KeyError(template_id)


def templates_by_category() -> dict[str, list[ReportTemplate]]:
    grouped: dict[str, list[ReportTemplate]] = defaultdict(list)
    for template in REPORT_TEMPLATES:
        grouped[template.category].append(template)
    return dict(grouped)


def build_config_from_template(
    template: ReportTemplate, overrides: dict[str, Any] | None = None
) -> ExportConfig:
    """Merge a template's partial config with caller overrides.

    Overrides may use snake_case or camelCase keys; they replace the
    template's value for the same field wholesale.
    """
    data: dict[str, Any] = {
        "format": template.format.value,
        "entityType": template.entity_type.value,
        **template.config,
    }
    merged = ExportConfig.model_validate(data).model_dump(by_alias=False)
    for key, value in (overrides or {}).items():
        field_name = _field_name(key)
        merged[field_name] = value
    return ExportConfig.model_validate(merged)


def _field_name(key: str) -> str:
    for name, info in ExportConfig.model_fields.items():
        if key in (name, info.alias):
            return name
    raise KeyError(key)
