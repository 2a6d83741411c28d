"""Column catalogs for each exportable entity type.

The catalog is static: column ids are the keys users select in
``include_columns``; ``field`` names the attribute in the raw records the
record provider returns.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from wasilah.data.models import EntityType


class ColumnType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    DATE = "date"
    CURRENCY = "currency"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class ColumnDefinition:
    """One selectable column of an entity type."""

    id: str
    label: str
    field: str
    type: ColumnType = ColumnType.STRING
    required: bool = False


@dataclass(frozen=True)
class EntityCatalog:
    """Static description of an entity type."""

    entity_type: EntityType
    label: str
    columns: tuple[ColumnDefinition, ...]
    # Raw field names tried in order to find a record's canonical timestamp
    date_fields: tuple[str, ...] = ()
    # Raw field names tried in order for the amount-range filter
    amount_fields: tuple[str, ...] = ("amount",)
    widths: dict[str, int] = field(default_factory=dict)

    def column(self, column_id: str) -> ColumnDefinition | None:
        for column in self.columns:
            if column.id == column_id:
                return column
        return None

    def field_for(self, column_id: str) -> str:
        column = self.column(column_id)
        return column.field if column else column_id

    @property
    def column_ids(self) -> list[str]:
        return [column.id for column in self.columns]

    @property
    def required_columns(self) -> list[str]:
        return [column.id for column in self.columns if column.required]


def _col(
    id: str,
    label: str,
    field: str | None = None,
    type: ColumnType = ColumnType.STRING,
    required: bool = False,
) -> ColumnDefinition:
    return ColumnDefinition(id=id, label=label, field=field or id, type=type, required=required)


N, D, C, B = (
    ColumnType.NUMBER,
    ColumnType.DATE,
    ColumnType.CURRENCY,
    ColumnType.BOOLEAN,
)

PROJECTS = EntityCatalog(
    entity_type=EntityType.PROJECTS,
    label="Projects",
    columns=(
        _col("id", "Project ID", required=True),
        _col("name", "Project Name", required=True),
        _col("ngo", "NGO", "ngoName"),
        _col("category", "Category"),
        _col("status", "Status"),
        _col("budget", "Budget", type=C),
        _col("spent", "Spent", type=C),
        _col("remaining", "Remaining", type=C),
        _col("beneficiaries", "Beneficiaries", type=N),
        _col("sdgs", "SDGs"),
        _col("startDate", "Start Date", type=D),
        _col("endDate", "End Date", type=D),
        _col("progress", "Progress %", type=N),
        _col("impactScore", "Impact Score", type=N),
        _col("location", "Location"),
    ),
    date_fields=("startDate", "start_date", "createdAt", "created_at"),
    amount_fields=("budget", "amount"),
    widths={"id": 12, "name": 30, "ngo": 25, "status": 12, "startDate": 12, "endDate": 12},
)

NGOS = EntityCatalog(
    entity_type=EntityType.NGOS,
    label="NGOs",
    columns=(
        _col("id", "NGO ID", required=True),
        _col("name", "NGO Name", required=True),
        _col("status", "Status"),
        _col("category", "Category"),
        _col("registrationNumber", "Registration #"),
        _col("email", "Email"),
        _col("phone", "Phone"),
        _col("address", "Address"),
        _col("location", "Location"),
        _col("founded", "Founded", type=D),
        _col("projectCount", "Projects", type=N),
        _col("volunteerCount", "Volunteers", type=N),
        _col("verified", "Verified", type=B),
        _col("rating", "Rating", type=N),
        _col("impactScore", "Impact Score", type=N),
    ),
    date_fields=("founded", "createdAt", "created_at"),
    amount_fields=("totalFunding", "amount"),
    widths={"id": 12, "name": 30, "email": 30, "address": 30, "projectCount": 10, "volunteerCount": 10},
)

VOLUNTEERS = EntityCatalog(
    entity_type=EntityType.VOLUNTEERS,
    label="Volunteers",
    columns=(
        _col("id", "Volunteer ID", required=True),
        _col("name", "Name", required=True),
        _col("email", "Email"),
        _col("phone", "Phone"),
        _col("skills", "Skills"),
        _col("totalHours", "Total Hours", type=N),
        _col("projectsCompleted", "Projects Completed", type=N),
        _col("status", "Status"),
        _col("joinedAt", "Joined Date", type=D),
        _col("lastActivity", "Last Activity", type=D),
        _col("city", "City"),
        _col("education", "Education"),
    ),
    date_fields=("joinedAt", "joinDate", "join_date", "createdAt", "created_at"),
    amount_fields=("totalHours", "amount"),
    widths={"id": 12, "name": 25, "email": 30, "skills": 30},
)

OPPORTUNITIES = EntityCatalog(
    entity_type=EntityType.OPPORTUNITIES,
    label="Opportunities",
    columns=(
        _col("id", "Opportunity ID", required=True),
        _col("title", "Title", required=True),
        _col("ngo", "NGO", "ngoName"),
        _col("category", "Category"),
        _col("location", "Location"),
        _col("positions", "Positions", type=N),
        _col("filled", "Filled", type=N),
        _col("applicants", "Applicants", type=N),
        _col("status", "Status"),
        _col("startDate", "Start Date", type=D),
        _col("endDate", "End Date", type=D),
        _col("commitment", "Commitment"),
    ),
    date_fields=("startDate", "postedDate", "posted_date", "createdAt", "created_at"),
    widths={"id": 12, "title": 30, "ngo": 25, "positions": 10, "filled": 10, "applicants": 10},
)

PAYMENTS = EntityCatalog(
    entity_type=EntityType.PAYMENTS,
    label="Payments",
    columns=(
        _col("id", "Payment ID", required=True),
        _col("project", "Project", "projectName"),
        _col("ngo", "NGO", "ngoName"),
        _col("corporate", "Corporate", "corporateName"),
        _col("amount", "Amount", type=C),
        _col("status", "Status"),
        _col("type", "Type"),
        _col("disbursedAt", "Disbursed At", type=D),
        _col("method", "Method"),
        _col("approvedBy", "Approved By"),
        _col("reference", "Reference"),
        _col("milestone", "Milestone"),
    ),
    date_fields=("disbursedAt", "paymentDate", "payment_date", "createdAt", "created_at"),
    amount_fields=("amount",),
    widths={"id": 12, "project": 30, "ngo": 25, "approvedBy": 20, "reference": 20},
)

AUDIT_LOGS = EntityCatalog(
    entity_type=EntityType.AUDIT_LOGS,
    label="Audit Logs",
    columns=(
        _col("timestamp", "Timestamp", type=D, required=True),
        _col("user", "User", "userName", required=True),
        _col("action", "Action"),
        _col("resource", "Resource"),
        _col("resourceId", "Resource ID"),
        _col("details", "Details"),
        _col("ipAddress", "IP Address"),
        _col("userAgent", "User Agent"),
        _col("success", "Success", type=B),
    ),
    date_fields=("timestamp", "createdAt", "created_at"),
    widths={"timestamp": 20, "user": 25, "action": 20, "details": 40},
)

CASES = EntityCatalog(
    entity_type=EntityType.CASES,
    label="Cases",
    columns=(
        _col("caseId", "Case ID", required=True),
        _col("type", "Type", required=True),
        _col("priority", "Priority"),
        _col("status", "Status"),
        _col("assignee", "Assignee"),
        _col("createdDate", "Created", type=D),
        _col("lastUpdate", "Last Update", type=D),
        _col("escalated", "Escalated", type=B),
    ),
    date_fields=("createdDate", "createdAt", "created_at"),
    widths={"type": 25, "assignee": 20},
)

USERS = EntityCatalog(
    entity_type=EntityType.USERS,
    label="Users",
    columns=(
        _col("id", "User ID", required=True),
        _col("name", "Name", required=True),
        _col("email", "Email"),
        _col("role", "Role"),
        _col("status", "Status"),
        _col("lastLogin", "Last Login", type=D),
        _col("permissions", "Permissions"),
    ),
    date_fields=("lastLogin", "createdAt", "created_at"),
    widths={"name": 25, "email": 30, "permissions": 30},
)

CATALOGS: dict[EntityType, EntityCatalog] = {
    catalog.entity_type: catalog
    for catalog in (
        PROJECTS,
        NGOS,
        VOLUNTEERS,
        OPPORTUNITIES,
        PAYMENTS,
        AUDIT_LOGS,
        CASES,
        USERS,
    )
}

# Fields tried after the entity-specific ones when looking for a timestamp
FALLBACK_DATE_FIELDS = ("createdAt", "created_at", "date", "timestamp")


def get_catalog(entity_type: EntityType | str) -> EntityCatalog:
    """Get the catalog of an entity type."""
    return CATALOGS[EntityType(entity_type)]


def get_columns(entity_type: EntityType | str) -> list[ColumnDefinition]:
    """Get column definitions by entity type."""
    return list(get_catalog(entity_type).columns)


def restrict_columns(declared: Sequence[str], include_columns: Sequence[str]) -> list[str]:
    """Declared column ids the caller asked for, in the caller's order.

    Falls back to every declared column when none of the requested ones is
    declared.
    """
    allowed = set(declared)
    selected = [column for column in include_columns if column in allowed]
    return selected or list(declared)
