"""
Tests for the HTML report renderer (core/reporting.py and render_report).

Covers:
- escaping of cell and attribute values
- per-row data-* attributes and column addressing
- header, KPI cards and summary computed over all rows
- embedded filter / preset / CSV export script
- write failures surfacing as ReportWriteError
"""
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.errors import ReportWriteError
from core.reporting import fncBuildHTMLReport, fncWriteHTMLReport
from modules.entra.inactive_users import (
    INACTIVE_FILTER_JS,
    INACTIVE_JS,
    REPORT_FILENAME,
    aggregate_rows,
    build_report_data,
    render_report,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_user(upn, days=None, ni_days=None, **overrides):
    user = {
        "id": upn,
        "userPrincipalName": upn,
        "displayName": upn.split("@")[0],
        "userType": "Member",
        "accountEnabled": True,
        "createdDateTime": datetime(2024, 5, 6, tzinfo=timezone.utc),
        "department": "IT",
        "jobTitle": "Engineer",
        "lastSignInDateTime": None if days is None else NOW - timedelta(days=days),
        "lastNonInteractiveSignInDateTime": None if ni_days is None else NOW - timedelta(days=ni_days),
        "assignedSkuIds": [],
    }
    user.update(overrides)
    return user


@pytest.fixture
def rows():
    users = [
        make_user("never@contoso.com"),
        make_user("stale@contoso.com", days=120, ni_days=100, assignedSkuIds=["sku-1"]),
        make_user("guest@fabrikam.com", days=5, userType="Guest", accountEnabled=False),
        make_user("Sync_DC01_abc@contoso.onmicrosoft.com", ni_days=0),
    ]
    return aggregate_rows(users, {"sku-1": "SPE_E3"}, NOW)


@pytest.fixture
def html_doc(rows):
    return fncBuildHTMLReport("inactive_users", build_report_data(rows, "Contoso Ltd", NOW))


# =============================================================================
# Structure Tests
# =============================================================================

class TestReportStructure:
    """Tests for the rendered document layout."""

    def test_header_carries_tenant_and_time(self, html_doc):
        assert "Entra Inactive Users — Contoso Ltd" in html_doc
        assert "Generated on 2026-03-01 12:00:00 UTC" in html_doc

    def test_user_table_id(self, html_doc):
        """Test the script can find the table by its id."""
        assert 'id="tbl-users"' in html_doc

    def test_one_row_per_user(self, html_doc, rows):
        assert html_doc.count('data-upn="') == len(rows)

    def test_columns_addressed_by_name(self, html_doc):
        """Test every header and cell carries a data-col slug."""
        assert "<th data-col='user-principal-name'>User Principal Name</th>" in html_doc
        assert "<th data-col='days-since-non-interactive'>" in html_doc
        assert "<td data-col='licenses'>SPE_E3</td>" in html_doc

    def test_kpis_and_summary_over_all_rows(self, html_doc):
        """Test summary figures are computed from the full row set."""
        assert 'data-kpi="total-users"' in html_doc
        assert "<tr><th>Total Users</th><td>4</td></tr>" in html_doc
        assert "<tr><th>Never Logged In</th><td>2</td></tr>" in html_doc
        assert "<tr><th>External</th><td>1</td></tr>" in html_doc

    def test_module_assets_injected(self, html_doc):
        assert '<main class="container inactive-users">' in html_doc
        assert ".inactive-users .iu-toolbar" in html_doc
        assert "function visibleRows(rows, s)" in html_doc

    def test_never_logged_in_display(self, html_doc):
        """Test both sign-in columns show the never literal and the Never pill."""
        assert "<td data-col='last-interactive-sign-in'>Never Logged In</td>" in html_doc
        assert "<td data-col='last-non-interactive-sign-in'>Never Logged In</td>" in html_doc
        assert "<span class='pill unknown'>Never</span>" in html_doc


# =============================================================================
# Row Attribute Tests
# =============================================================================

class TestRowAttributes:
    """Tests for the data-* attributes the filters key off."""

    def _row_tag(self, html_doc, upn):
        start = html_doc.index(f'data-upn="{upn}"')
        return html_doc[html_doc.rindex("<tr", 0, start):html_doc.index(">", start)]

    def test_never_user_attributes(self, html_doc):
        tag = self._row_tag(html_doc, "never@contoso.com")

        assert 'data-never="true"' in tag
        assert 'data-bucket="never"' in tag
        assert 'data-ni-bucket="never"' in tag
        assert 'data-licensed="false"' in tag

    def test_stale_user_attributes(self, html_doc):
        tag = self._row_tag(html_doc, "stale@contoso.com")

        assert 'data-bucket="90-plus"' in tag
        assert 'data-ni-bucket="90-plus"' in tag
        assert 'data-licensed="true"' in tag
        assert 'data-enabled="true"' in tag
        assert 'data-external="false"' in tag

    def test_guest_attributes(self, html_doc):
        tag = self._row_tag(html_doc, "guest@fabrikam.com")

        assert 'data-external="true"' in tag
        assert 'data-enabled="false"' in tag
        assert 'data-bucket="0-30"' in tag

    def test_sync_attributes(self, html_doc):
        tag = self._row_tag(html_doc, "Sync_DC01_abc@contoso.onmicrosoft.com")

        assert 'data-sync="true"' in tag
        assert 'data-never="true"' in tag
        assert 'data-ni-bucket="0-30"' in tag


# =============================================================================
# Escaping Tests
# =============================================================================

class TestEscaping:
    """Tests that directory values cannot inject markup."""

    def test_cell_and_attribute_values_escaped(self):
        hostile = '<script>alert("x")</script>'
        rows = aggregate_rows(
            [make_user("evil@contoso.com", days=1, displayName=hostile, department="R&D")],
            {}, NOW,
        )

        doc = fncBuildHTMLReport("inactive_users", build_report_data(rows, "A & B <Corp>", NOW))

        assert hostile not in doc
        assert "&lt;script&gt;alert(&quot;x&quot;)&lt;/script&gt;" in doc
        assert 'data-name="&lt;script&gt;alert(&quot;x&quot;)&lt;/script&gt;"' in doc
        assert "<td data-col='department'>R&amp;D</td>" in doc
        assert "A &amp; B &lt;Corp&gt;" in doc


# =============================================================================
# Script Tests
# =============================================================================

class TestReportScript:
    """Tests for the embedded filter, preset and export script."""

    @pytest.mark.parametrize("preset", [
        "all", "int-0-30", "int-31-90", "int-90-plus", "ni-0-30", "ni-31-90", "ni-90-plus",
    ])
    def test_all_presets_present(self, preset):
        assert f"'{preset}'" in INACTIVE_JS
        assert f'data-preset="{preset}"' in INACTIVE_JS

    def test_presets_use_row_attributes(self):
        """Test presets read dataset values, never cell positions."""
        assert "d.bucket === '90-plus'" in INACTIVE_JS
        assert "d.niBucket === '0-30'" in INACTIVE_JS
        assert "cells[" not in INACTIVE_JS
        assert "cellIndex" not in INACTIVE_JS

    @pytest.mark.parametrize("flag", [
        "hideExternal", "hideSync", "onlyEnabled", "onlyDisabled", "onlyLicensed", "hideNever",
    ])
    def test_filter_controls(self, flag):
        assert f'data-filter="{flag}"' in INACTIVE_JS
        assert f"s.{flag}" in INACTIVE_JS

    def test_page_wires_export_to_filter_core(self):
        """Test the download is built by the DOM-free CSV helper."""
        assert "F.csvText(cols.map(c => c.label), records)" in INACTIVE_JS
        assert "'Entra_Inactive_Users_Report.csv'" in INACTIVE_JS

    def test_filter_core_has_no_dom_access(self):
        """Test the filter core runs before the page script and without a document."""
        assert INACTIVE_JS.startswith(INACTIVE_FILTER_JS)
        assert "document" not in INACTIVE_FILTER_JS

    def test_csv_export_uses_visible_rows_and_columns(self):
        assert "visibleRows(Array.from(tbody.rows), state)" in INACTIVE_JS
        assert "columns.filter(c => !state.hidden.has(c.key))" in INACTIVE_JS

    def test_counter_and_fullscreen(self):
        assert "Showing ${shown.size} of ${total}" in INACTIVE_JS
        assert "iu-fullscreen" in INACTIVE_JS


# =============================================================================
# Write Tests
# =============================================================================

class TestWriteReport:
    """Tests for writing the report to disk."""

    def test_render_report_creates_directory(self, tmp_path, rows):
        out_dir = tmp_path / "reports" / "entra"

        path = render_report(rows, "Contoso Ltd", str(out_dir), NOW)

        assert path == os.path.join(str(out_dir), REPORT_FILENAME)
        with open(path, encoding="utf-8") as f:
            content = f.read()
        assert content.startswith("<!DOCTYPE html>")
        assert "stale@contoso.com" in content

    def test_empty_rows_still_render(self, tmp_path):
        path = render_report([], "Contoso Ltd", str(tmp_path), NOW)

        with open(path, encoding="utf-8") as f:
            content = f.read()
        assert "<tr><th>Total Users</th><td>0</td></tr>" in content

    def test_unwritable_location_raises(self, tmp_path):
        """Test an output path under a regular file raises ReportWriteError."""
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x", encoding="utf-8")

        with pytest.raises(ReportWriteError) as exc_info:
            fncWriteHTMLReport(str(blocker / REPORT_FILENAME), "inactive_users", {"summary": {}})

        assert isinstance(exc_info.value, OSError)
        assert "not-a-dir" in str(exc_info.value)
