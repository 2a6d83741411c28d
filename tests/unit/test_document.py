"""Unit tests for the paginated PDF builder and its formatting helpers."""

from __future__ import annotations

from datetime import datetime

import pytest
from reportlab.lib.pagesizes import A4, landscape

from wasilah.data.document import (
    DocumentBuilder,
    DocumentOptions,
    TableColumn,
    TableConfig,
    entity_summary,
    entity_tables,
    format_cell_value,
    format_generated_on,
    format_header_name,
)
from wasilah.data.models import EntityType
from wasilah.data.records import parse_records

pytestmark = pytest.mark.unit


def _table(row_count: int, **kwargs) -> TableConfig:
    return TableConfig(
        title="Projects Report",
        rows=[{"name": f"Project {n}", "budget": 1000 * n} for n in range(row_count)],
        columns=[TableColumn("Project Name", "name"), TableColumn("Budget", "budget", width=40)],
        **kwargs,
    )


def _options(**kwargs) -> DocumentOptions:
    kwargs.setdefault("title", "Projects Report")
    kwargs.setdefault("generated_at", datetime(2024, 6, 15, 9, 30))
    return DocumentOptions(**kwargs)


class TestFormatting:
    @pytest.mark.parametrize(
        "key, expected",
        [
            ("totalBudget", "Total Budget"),
            ("total_budget", "Total Budget"),
            ("avgHoursPerVolunteer", "Avg Hours Per Volunteer"),
            ("verified", "Verified"),
        ],
    )
    def test_format_header_name(self, key, expected):
        assert format_header_name(key) == expected

    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, ""),
            (True, "Yes"),
            (False, "No"),
            (5000, "5,000"),
            (1234.5, "1,234.50"),
            (12_500_000, "PKR 12,500,000"),
            ("2024-01-15", "15/01/2024"),
            ("2024-02-01T10:00:00Z", "01/02/2024"),
            (datetime(2024, 3, 9, 8, 0), "09/03/2024"),
            ("Active", "Active"),
        ],
    )
    def test_format_cell_value(self, value, expected):
        assert format_cell_value(value) == expected

    def test_currency_threshold_and_prefix(self):
        assert format_cell_value(20000, currency_prefix="USD", currency_threshold=100) == (
            "USD 20,000"
        )
        assert format_cell_value(10000) == "10,000"

    def test_format_generated_on(self):
        assert format_generated_on(datetime(2024, 6, 5, 14, 30)) == (
            "June 5, 2024 at 02:30 PM"
        )


class TestDocumentBuilder:
    """A4 layout, numbered footers and the metadata appendix."""

    def test_single_page(self):
        document = DocumentBuilder(_options()).build([_table(3)])

        assert document.content.startswith(b"%PDF")
        assert document.page_count == 1
        assert document.footers == ["Page 1 of 1"]

    def test_long_table_paginates(self):
        document = DocumentBuilder(_options()).build([_table(200)])

        total = document.page_count
        assert total > 1
        assert document.footers == [f"Page {n} of {total}" for n in range(1, total + 1)]

    def test_metadata_page_appended(self):
        without = DocumentBuilder(_options()).build([_table(3)])
        with_meta = DocumentBuilder(_options(include_metadata=True)).build([_table(3)])
        assert with_meta.page_count == without.page_count + 1

    def test_summary_block(self):
        table = _table(3, include_summary=True, summary={"totalProjects": 3})
        document = DocumentBuilder(_options()).build([table])
        assert document.page_count == 1

    def test_chunk_hook(self):
        calls = []
        DocumentBuilder(_options(chunk_size=2)).build(
            [_table(3)], lambda done, total: calls.append((done, total))
        )
        assert calls == [(2, 3), (3, 3)]

    def test_landscape_orientation(self):
        builder = DocumentBuilder(_options(orientation="landscape"))
        assert builder.pagesize == landscape(A4)
        assert DocumentBuilder(_options()).pagesize == A4

    def test_markup_characters_are_escaped(self):
        table = TableConfig(
            title="R&D <draft>",
            rows=[{"name": "A < B & C"}],
            columns=[TableColumn("Name", "name")],
        )
        document = DocumentBuilder(_options(title="R&D")).build([table])
        assert document.page_count == 1


class TestEntityTables:
    def test_projects_table(self, project_records):
        records = parse_records("projects", project_records)
        (table,) = entity_tables("projects", records, ["budget", "name", "remaining"])

        assert table.title == "Projects Report"
        # Only columns declared for the document layout are kept
        assert [column.key for column in table.columns] == ["budget", "name"]
        assert table.include_summary is True
        assert len(table.rows) == 4

    def test_table_titles(self):
        assert entity_tables("ngos", [], ["name"])[0].title == "Organizations Report"
        assert (
            entity_tables("opportunities", [], ["title"])[0].title
            == "Volunteer Opportunities Report"
        )

    def test_projects_summary(self, project_records):
        records = parse_records("projects", project_records)
        assert entity_summary(EntityType.PROJECTS, records) == {
            "totalProjects": 4,
            "totalBudget": "23,500,000",
            "totalBeneficiaries": "14,200",
            "activeProjects": 2,
        }

    def test_payments_summary(self, payment_records):
        records = parse_records("payments", payment_records)
        summary = entity_summary(EntityType.PAYMENTS, records)
        assert summary["totalPayments"] == 5
        assert summary["totalAmount"] == "1,950,000"
        assert summary["completed"] == 3
        assert summary["pending"] == 1
