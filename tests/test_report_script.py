"""
Tests for the report page's filter and CSV logic, executed in V8.

The rows fed to the script are built from aggregated users the same way the
page builds them: each row's data-* attributes become a dataset object.

Covers:
- combined filters and inactivity presets
- non-interactive presets never matching "Never"
- search, enabled/disabled and licensed filters
- CSV text: BOM, CRLF lines, quoting, field counts
"""
import csv
import json
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest
from py_mini_racer import MiniRacer

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from modules.entra.inactive_users import (
    INACTIVE_FILTER_JS,
    aggregate_rows,
    build_report_data,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_user(upn, days=None, ni_days=None, **overrides):
    user = {
        "id": upn,
        "userPrincipalName": upn,
        "displayName": upn.split("@")[0].title(),
        "userType": "Member",
        "accountEnabled": True,
        "createdDateTime": NOW - timedelta(days=500),
        "department": None,
        "jobTitle": None,
        "lastSignInDateTime": None if days is None else NOW - timedelta(days=days),
        "lastNonInteractiveSignInDateTime": None if ni_days is None else NOW - timedelta(days=ni_days),
        "assignedSkuIds": [],
    }
    user.update(overrides)
    return user


def to_dataset(attrs):
    """Mirror how a browser exposes data-* attributes on tr.dataset."""
    out = {}
    for key, val in attrs.items():
        head, *rest = key.split("-")
        name = head + "".join(p.title() for p in rest)
        out[name] = ("true" if val else "false") if isinstance(val, bool) else str(val)
    return out


@pytest.fixture(scope="module")
def js():
    ctx = MiniRacer()
    ctx.eval(INACTIVE_FILTER_JS)
    return ctx


@pytest.fixture(scope="module")
def rows():
    users = [
        make_user("stale@contoso.com", days=120, ni_days=100, assignedSkuIds=["sku-e3"]),
        make_user("oldguest@fabrikam.com", days=200, userType="Guest"),
        make_user("recent@contoso.com", days=3, ni_days=1, assignedSkuIds=["sku-e3"]),
        make_user("never@contoso.com"),
        make_user("nionly@contoso.com", ni_days=40),
        make_user("disabled@contoso.com", days=50, accountEnabled=False),
        make_user("Sync_DC01_ab12@contoso.onmicrosoft.com", ni_days=0),
    ]
    payload = build_report_data(aggregate_rows(users, {"sku-e3": "SPE_E3"}, NOW), "Contoso", NOW)
    return [to_dataset(r["_attrs"]) for r in payload["users"]]


def visible(js, rows, **state):
    """UPNs the page would show for the given filter state."""
    expr = (
        f"JSON.stringify(IU_FILTERS.visibleRows({json.dumps(rows)}, "
        f"Object.assign(IU_FILTERS.initialState(), {json.dumps(state)})).map(d => d.upn))"
    )
    return sorted(json.loads(js.eval(expr)))


# =============================================================================
# Filter Tests
# =============================================================================

class TestFilters:
    """Tests for matches / visibleRows over dataset-shaped rows."""

    def test_default_state_shows_everything(self, js, rows):
        assert len(visible(js, rows)) == len(rows)

    def test_hide_external_with_over_90_preset(self, js, rows):
        """Test both conditions must hold for a row to stay visible."""
        assert visible(js, rows, hideExternal=True, preset="int-90-plus") == ["stale@contoso.com"]

    def test_over_90_preset_alone_keeps_guest(self, js, rows):
        assert visible(js, rows, preset="int-90-plus") == ["oldguest@fabrikam.com", "stale@contoso.com"]

    @pytest.mark.parametrize("preset,expected", [
        ("ni-0-30", ["Sync_DC01_ab12@contoso.onmicrosoft.com", "recent@contoso.com"]),
        ("ni-31-90", ["nionly@contoso.com"]),
        ("ni-90-plus", ["stale@contoso.com"]),
    ])
    def test_non_interactive_presets(self, js, rows, preset, expected):
        assert visible(js, rows, preset=preset) == expected

    def test_non_interactive_presets_exclude_never(self, js, rows):
        """Test a user with no sign-in of any kind matches no non-interactive preset."""
        never_rows = [r for r in rows if r["niBucket"] == "never"]
        assert never_rows

        for preset in ("ni-0-30", "ni-31-90", "ni-90-plus"):
            assert visible(js, never_rows, preset=preset) == []

    def test_interactive_never_is_not_a_numeric_bucket(self, js, rows):
        """Test never-signed-in users do not leak into interactive presets."""
        shown = set()
        for preset in ("int-0-30", "int-31-90", "int-90-plus"):
            shown.update(visible(js, rows, preset=preset))

        assert "never@contoso.com" not in shown
        assert "nionly@contoso.com" not in shown

    def test_search_is_case_insensitive_on_upn_and_name(self, js, rows):
        assert visible(js, rows, q="nionly") == ["nionly@contoso.com"]
        assert visible(js, rows, q="oldguest@fab") == ["oldguest@fabrikam.com"]

    def test_enabled_and_disabled_partition(self, js, rows):
        enabled = visible(js, rows, onlyEnabled=True)
        disabled = visible(js, rows, onlyDisabled=True)

        assert disabled == ["disabled@contoso.com"]
        assert sorted(enabled + disabled) == visible(js, rows)

    def test_licensed_sync_and_never_filters(self, js, rows):
        assert visible(js, rows, onlyLicensed=True) == ["recent@contoso.com", "stale@contoso.com"]
        assert "Sync_DC01_ab12@contoso.onmicrosoft.com" not in visible(js, rows, hideSync=True)
        assert visible(js, rows, hideNever=True, preset="ni-0-30") == ["recent@contoso.com"]

    def test_unknown_preset_falls_back_to_all(self, js, rows):
        assert len(visible(js, rows, preset="bogus")) == len(rows)


# =============================================================================
# CSV Tests
# =============================================================================

class TestCsvText:
    """Tests for the CSV text built from visible rows and columns."""

    HEADER = ["Display Name", "User Principal Name", "Licenses"]
    RECORDS = [
        ['Dana "DJ" Jones', "dana@contoso.com", "SPE_E3, EMSPREMIUM"],
        ["Lee", "lee@contoso.com", "No License Assigned"],
        ["", "blank@contoso.com", ""],
    ]

    def _csv(self, js):
        return js.eval(
            f"IU_FILTERS.csvText({json.dumps(self.HEADER)}, {json.dumps(self.RECORDS)})"
        )

    def test_bom_and_crlf(self, js):
        text = self._csv(js)

        assert text.startswith("\ufeff")
        lines = text[1:].split("\r\n")
        assert len(lines) == 1 + len(self.RECORDS)
        assert "\n" not in "".join(lines)

    def test_every_field_quoted_and_quotes_doubled(self, js):
        lines = self._csv(js)[1:].split("\r\n")

        assert lines[0] == '"Display Name","User Principal Name","Licenses"'
        assert lines[1].startswith('"Dana ""DJ"" Jones",')
        assert lines[3] == '"","blank@contoso.com",""'

    def test_fields_survive_a_csv_reader(self, js):
        """Test commas and quotes inside values keep the column count intact."""
        parsed = list(csv.reader(self._csv(js)[1:].split("\r\n")))

        assert parsed[0] == self.HEADER
        assert parsed[1:] == self.RECORDS
        assert all(len(row) == len(self.HEADER) for row in parsed)

    def test_header_only_when_nothing_visible(self, js):
        text = js.eval(f"IU_FILTERS.csvText({json.dumps(self.HEADER)}, [])")

        assert text == '\ufeff"Display Name","User Principal Name","Licenses"'
