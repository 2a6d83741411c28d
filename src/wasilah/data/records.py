"""Typed entity records.

Raw records from the data layer disagree on field names (``amount_spent`` vs
``spent``, ``ngo_name`` vs ``ngoName``) and carry money as display strings
(``"PKR 12,500,000"``). Each entity type gets a pydantic model that accepts
every known spelling and exposes :meth:`EntityRecord.to_row`, keyed by the
catalog column ids, for the spreadsheet and document adapters.
"""

from __future__ import annotations

import json
import re
from datetime import date, datetime
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    TypeAdapter,
    computed_field,
)

from wasilah.data.models import EntityType

_NUMBER_RE = re.compile(r"-?\d[\d,]*(?:\.\d+)?|-?\.\d+")


def parse_money(value: Any) -> float | None:
    """Coerce a number or display string (``"PKR 12,500,000"``) to a float.

    Returns ``None`` when no number can be read.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _NUMBER_RE.search(value)
        if match is None:
            return None
        return float(match.group(0).replace(",", ""))
    return None


def _to_count(value: Any) -> int | None:
    number = parse_money(value)
    return int(number) if number is not None else None


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, (list, tuple, set)):
        return ", ".join(str(item) for item in value)
    if isinstance(value, dict):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


_TRUE_WORDS = frozenset(
    {"true", "yes", "y", "1", "on", "verified", "success", "successful", "escalated"}
)
_FALSE_WORDS = frozenset(
    {"false", "no", "n", "0", "off", "unverified", "failed", "failure", "not escalated"}
)


def _to_flag(value: Any) -> bool | None:
    """Read a yes/no field; status words the flag does not settle become ``None``."""
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    return None


Money = Annotated[float | None, BeforeValidator(parse_money)]
Count = Annotated[int | None, BeforeValidator(_to_count)]
Text = Annotated[str | None, BeforeValidator(_to_text)]
Flag = Annotated[bool | None, BeforeValidator(_to_flag)]
# ISO strings are kept as-is; renderers convert them for date columns
When = Union[datetime, date, str, None]


def _field(column_id: str, *aliases: str) -> Any:
    return Field(
        default=None,
        validation_alias=AliasChoices(column_id, *aliases),
        serialization_alias=column_id,
    )


class EntityRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    def to_row(self) -> dict[str, Any]:
        """Row keyed by catalog column id, including derived columns."""
        return self.model_dump(by_alias=True, exclude={"entity_type"})


class ProjectRecord(EntityRecord):
    entity_type: Literal["projects"] = "projects"
    id: Text = _field("id", "_id", "projectId", "project_id")
    name: Text = _field("name", "title", "projectName")
    ngo: Text = _field("ngo", "ngoName", "ngo_name", "organization")
    category: Text = _field("category", "sector")
    status: Text = _field("status")
    budget: Money = _field("budget", "totalBudget", "total_budget")
    spent: Money = _field("spent", "amountSpent", "amount_spent")
    beneficiaries: Count = _field("beneficiaries", "beneficiaryCount", "beneficiary_count")
    sdgs: Text = _field("sdgs", "sdgGoals", "sdg_goals")
    start_date: When = _field("startDate", "start_date")
    end_date: When = _field("endDate", "end_date")
    progress: Money = _field("progress", "completion")
    impact_score: Money = _field("impactScore", "impact_score")
    location: Text = _field("location", "city")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def remaining(self) -> float | None:
        if self.budget is None:
            return None
        return self.budget - (self.spent or 0.0)


class NgoRecord(EntityRecord):
    entity_type: Literal["ngos"] = "ngos"
    id: Text = _field("id", "_id", "ngoId", "ngo_id")
    name: Text = _field("name", "organizationName", "organization_name")
    status: Text = _field("status", "vettingStatus", "vetting_status")
    category: Text = _field("category", "sector", "focusArea", "focus_area")
    registration_number: Text = _field(
        "registrationNumber", "registration_number", "regNumber"
    )
    email: Text = _field("email", "contactEmail", "contact_email")
    phone: Text = _field("phone", "contactPhone", "contact_phone")
    address: Text = _field("address")
    location: Text = _field("location", "city")
    founded: When = _field("founded", "foundedYear", "founded_year", "establishedDate")
    project_count: Count = _field("projectCount", "project_count", "projectsCount")
    volunteer_count: Count = _field("volunteerCount", "volunteer_count", "volunteersCount")
    verified: Flag = _field("verified", "isVerified", "is_verified")
    rating: Money = _field("rating")
    impact_score: Money = _field("impactScore", "impact_score")


class VolunteerRecord(EntityRecord):
    entity_type: Literal["volunteers"] = "volunteers"
    id: Text = _field("id", "_id", "volunteerId", "volunteer_id")
    name: Text = _field("name", "fullName", "full_name")
    email: Text = _field("email")
    phone: Text = _field("phone")
    skills: Text = _field("skills")
    total_hours: Money = _field("totalHours", "total_hours", "hours", "hoursLogged")
    projects_completed: Count = _field("projectsCompleted", "projects_completed")
    status: Text = _field("status")
    joined_at: When = _field("joinedAt", "joined_at", "joinDate", "join_date")
    last_activity: When = _field("lastActivity", "last_activity", "lastActive", "last_active")
    city: Text = _field("city", "location")
    education: Text = _field("education")


class OpportunityRecord(EntityRecord):
    entity_type: Literal["opportunities"] = "opportunities"
    id: Text = _field("id", "_id", "opportunityId")
    title: Text = _field("title", "name")
    ngo: Text = _field("ngo", "ngoName", "ngo_name", "organization")
    category: Text = _field("category")
    location: Text = _field("location", "city")
    positions: Count = _field("positions", "totalPositions", "total_positions")
    filled: Count = _field("filled", "spotsFilled", "spots_filled")
    applicants: Count = _field("applicants", "totalApplicants", "total_applicants")
    status: Text = _field("status")
    start_date: When = _field("startDate", "start_date", "postedDate", "posted_date")
    end_date: When = _field("endDate", "end_date")
    commitment: Text = _field("commitment", "duration", "timeCommitment")


class PaymentRecord(EntityRecord):
    entity_type: Literal["payments"] = "payments"
    id: Text = _field("id", "_id", "paymentId", "payment_id")
    project: Text = _field("project", "projectName", "project_name")
    ngo: Text = _field("ngo", "ngoName", "ngo_name")
    corporate: Text = _field("corporate", "corporateName", "corporate_name", "company")
    amount: Money = _field("amount")
    status: Text = _field("status")
    kind: Text = _field("type", "paymentType", "payment_type")
    disbursed_at: When = _field(
        "disbursedAt", "disbursed_at", "paymentDate", "payment_date", "date"
    )
    method: Text = _field("method", "paymentMethod", "payment_method")
    approved_by: Text = _field("approvedBy", "approved_by")
    reference: Text = _field("reference", "referenceNumber", "reference_number")
    milestone: Text = _field("milestone")


class AuditLogRecord(EntityRecord):
    entity_type: Literal["audit_logs"] = "audit_logs"
    timestamp: When = _field("timestamp", "createdAt", "created_at")
    user: Text = _field("user", "userName", "user_name", "actor")
    action: Text = _field("action")
    resource: Text = _field("resource", "resourceType", "resource_type", "entity")
    resource_id: Text = _field("resourceId", "resource_id", "entityId", "entity_id")
    details: Text = _field("details", "description")
    ip_address: Text = _field("ipAddress", "ip_address", "ip")
    user_agent: Text = _field("userAgent", "user_agent")
    success: Flag = _field("success")


class CaseRecord(EntityRecord):
    entity_type: Literal["cases"] = "cases"
    case_id: Text = _field("caseId", "case_id", "id")
    kind: Text = _field("type", "caseType", "case_type")
    priority: Text = _field("priority")
    status: Text = _field("status")
    assignee: Text = _field("assignee", "assignedTo", "assigned_to")
    created_date: When = _field("createdDate", "created_date", "createdAt", "created_at")
    last_update: When = _field("lastUpdate", "last_update", "updatedAt", "updated_at")
    escalated: Flag = _field("escalated")


class UserRecord(EntityRecord):
    entity_type: Literal["users"] = "users"
    id: Text = _field("id", "_id", "userId", "user_id")
    name: Text = _field("name", "fullName", "full_name")
    email: Text = _field("email")
    role: Text = _field("role")
    status: Text = _field("status")
    last_login: When = _field("lastLogin", "last_login")
    permissions: Text = _field("permissions")


AnyRecord = Annotated[
    Union[
        ProjectRecord,
        NgoRecord,
        VolunteerRecord,
        OpportunityRecord,
        PaymentRecord,
        AuditLogRecord,
        CaseRecord,
        UserRecord,
    ],
    Field(discriminator="entity_type"),
]

_record_adapter: TypeAdapter[Any] = TypeAdapter(AnyRecord)


def parse_record(entity_type: EntityType | str, raw: dict[str, Any]) -> EntityRecord:
    """Validate one raw record into the typed record of its entity type."""
    return _record_adapter.validate_python(
        {**raw, "entity_type": EntityType(entity_type).value}
    )


def parse_records(
    entity_type: EntityType | str, raws: list[dict[str, Any]]
) -> list[EntityRecord]:
    return [parse_record(entity_type, raw) for raw in raws]
