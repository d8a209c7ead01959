# ================================================================
# File     : modules/entra/inactive_users.py
# Purpose  : Entra Inactive Users report
#            - users + interactive / non-interactive sign-in activity
#            - licence names resolved from subscribed SKUs
#            - external (guest / #EXT#) and directory-sync detection
#            - inactivity buckets: Never, ≤30, 31–90, >90 days
#            - one self-contained HTML report with search, filters,
#              presets, column toggles, fullscreen and CSV export
# Notes    : Read-only Graph. Tenant name and SKU lookups degrade to
#            defaults; user enumeration failures abort the run.
# ================================================================

import os
import re
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from core.utils import (
    fncPrintMessage,
    fncToTable,
    fncNewRunId,
    fncDaysSince,
    fncFormatDate,
)
from core.reporting import fncWriteHTMLReport
from handlers.graph.directory import (
    fetch_all_users,
    fetch_license_sku_map,
    fetch_tenant_display_name,
)

REQUIRED_PERMS = [
    "AuditLog.Read.All",      # signInActivity
    "User.Read.All",
    "Organization.Read.All",  # tenant name + subscribedSkus
]

REPORT_FILENAME = "Entra_Inactive_Users_Report.html"

NO_LICENSE = "No License Assigned"
NEVER = "Never"
NEVER_LOGGED_IN = "Never Logged In"
EXTERNAL_MARKER = "#EXT#"

# Azure AD Connect / Entra Connect service identities
SYNC_ACCOUNT_RE = re.compile(r"^(sync_|adtoaadsyncserviceaccount)", re.IGNORECASE)

BUCKET_NEVER = "Never"
BUCKET_30 = "≤30"
BUCKET_90 = "31–90"
BUCKET_OVER = ">90"

# Attribute-safe keys used by the report script
BUCKET_SLUGS = {
    BUCKET_NEVER: "never",
    BUCKET_30: "0-30",
    BUCKET_90: "31-90",
    BUCKET_OVER: "90-plus",
}

BUCKET_PILLS = {
    BUCKET_NEVER: "unknown",
    BUCKET_30: "ok",
    BUCKET_90: "warn",
    BUCKET_OVER: "crit",
}

# ----------------------- module-local CSS ------------------------
INACTIVE_CSS = r"""
.inactive-users .iu-toolbar{
  display:flex; gap:10px; align-items:center; margin:6px 2px 0 2px; flex-wrap:wrap;
}
.inactive-users .iu-toolbar input[type="search"]{
  padding:6px 10px; border-radius:999px; border:1px solid var(--border);
  background:var(--card); color:var(--ink); min-width:260px; outline:none;
}
.inactive-users .iu-toolbar label{ font-size:.9rem; white-space:nowrap; cursor:pointer }
.inactive-users .iu-toolbar .btn{
  padding:6px 12px; border:1px solid var(--border); border-radius:999px; color:var(--hound);
  background:var(--card); cursor:pointer; font-weight:600;
}
.inactive-users .iu-toolbar .btn.active,
.inactive-users .iu-toolbar .btn.primary{
  background:linear-gradient(90deg,var(--hound),var(--hound2));
  color:#fff; border-color:transparent;
}
.inactive-users .iu-presets{ display:flex; gap:6px; flex-wrap:wrap; width:100% }
.inactive-users .iu-count{ color:var(--muted); font-variant-numeric:tabular-nums }
.inactive-users .iu-columns{
  display:flex; gap:12px; flex-wrap:wrap; width:100%; padding:8px 10px;
  border:1px dashed var(--border); border-radius:8px;
}
.inactive-users .iu-columns[hidden]{ display:none }
.inactive-users .iu-hide{ display:none !important }

.inactive-users table thead th{ position:sticky; top:0; z-index:2; cursor:pointer }
.inactive-users table thead th.sort-asc::after{ content:" ▲"; font-size:.7rem }
.inactive-users table thead th.sort-desc::after{ content:" ▼"; font-size:.7rem }
.inactive-users td[data-col^="days-since"], .inactive-users th[data-col^="days-since"]{ text-align:center }

.inactive-users .card.iu-fullscreen{
  position:fixed; inset:0; z-index:1000; margin:0; padding:16px 20px;
  background:var(--card); overflow:auto;
}
"""

# ----------------------- module-local JS -------------------------
# Filter and CSV logic has no DOM access: rows are plain objects shaped like
# a <tr>'s dataset (upn, name, external, enabled, licensed, never, sync,
# bucket, niBucket). Presets read those attributes, never cell positions.
INACTIVE_FILTER_JS = r"""
var IU_FILTERS = (function () {
  const PRESETS = {
    'all':         () => true,
    'int-0-30':    d => d.bucket === '0-30',
    'int-31-90':   d => d.bucket === '31-90',
    'int-90-plus': d => d.bucket === '90-plus',
    // "never" is not a non-interactive bucket match
    'ni-0-30':     d => d.niBucket === '0-30',
    'ni-31-90':    d => d.niBucket === '31-90',
    'ni-90-plus':  d => d.niBucket === '90-plus'
  };

  const initialState = () => ({
    q: '',
    hideExternal: false,
    hideSync: false,
    onlyEnabled: false,
    onlyDisabled: false,
    onlyLicensed: false,
    hideNever: false,
    preset: 'all',
    hidden: new Set()
  });

  function matches(d, s) {
    if (s.q) {
      const upn = (d.upn || '').toLowerCase();
      const name = (d.name || '').toLowerCase();
      if (!upn.includes(s.q) && !name.includes(s.q)) return false;
    }
    if (s.hideExternal && d.external === 'true') return false;
    if (s.hideSync && d.sync === 'true') return false;
    if (s.onlyEnabled && d.enabled !== 'true') return false;
    if (s.onlyDisabled && d.enabled === 'true') return false;
    if (s.onlyLicensed && d.licensed !== 'true') return false;
    if (s.hideNever && d.never === 'true') return false;
    return (PRESETS[s.preset] || PRESETS.all)(d);
  }

  // rows: <tr> elements or plain dataset-shaped objects
  function visibleRows(rows, s) {
    return rows.filter(r => matches(r.dataset || r, s));
  }

  const csvField = v => '"' + String(v).replace(/"/g, '""') + '"';

  function csvLines(header, records) {
    return [header.map(csvField).join(',')]
      .concat(records.map(rec => rec.map(csvField).join(',')));
  }

  function csvText(header, records) {
    return '\uFEFF' + csvLines(header, records).join('\r\n');
  }

  return { PRESETS, initialState, matches, visibleRows, csvField, csvLines, csvText };
})();
"""

INACTIVE_PAGE_JS = r"""
(function () {
  const root = document.querySelector('.inactive-users') || document;
  const table = root.querySelector('#tbl-users');
  if (!table) return;
  const F = IU_FILTERS;
  const card = table.closest('.card');
  const tbody = table.querySelector('tbody');
  const headers = Array.from(table.querySelectorAll('thead th'));
  const columns = headers.map(th => ({ key: th.dataset.col, label: (th.textContent || '').trim() }));
  const total = tbody.rows.length;

  const esc = s => String(s).replace(/[&<>"']/g,
    ch => ({'&':'&amp;','<':'&lt;','>':'&gt;','"':'&quot;',"'":'&#39;'}[ch]));

  let state = F.initialState();

  // ---------- toolbar ----------
  const bar = document.createElement('div');
  bar.className = 'iu-toolbar';
  bar.innerHTML = `
    <input type="search" placeholder="Search UPN or display name…" aria-label="Search users" data-role="search">
    <label><input type="checkbox" data-filter="hideExternal"> Hide external</label>
    <label><input type="checkbox" data-filter="hideSync"> Hide sync accounts</label>
    <label><input type="checkbox" data-filter="onlyEnabled"> Only enabled</label>
    <label><input type="checkbox" data-filter="onlyDisabled"> Only disabled</label>
    <label><input type="checkbox" data-filter="onlyLicensed"> Only licensed</label>
    <label><input type="checkbox" data-filter="hideNever"> Hide never logged in</label>
    <span class="iu-count" data-role="count"></span>
    <button class="btn" data-action="columns">Columns ▾</button>
    <button class="btn" data-action="fullscreen">Fullscreen</button>
    <button class="btn" data-action="reset">Reset</button>
    <button class="btn primary" data-action="csv">Export CSV</button>
    <div class="iu-presets">
      <button class="btn" data-preset="all">All</button>
      <button class="btn" data-preset="int-0-30">Interactive ≤30d</button>
      <button class="btn" data-preset="int-31-90">Interactive 31–90d</button>
      <button class="btn" data-preset="int-90-plus">Interactive &gt;90d</button>
      <button class="btn" data-preset="ni-0-30">Non-interactive ≤30d</button>
      <button class="btn" data-preset="ni-31-90">Non-interactive 31–90d</button>
      <button class="btn" data-preset="ni-90-plus">Non-interactive &gt;90d</button>
    </div>
    <div class="iu-columns" data-role="columns" hidden>
      ${columns.map(c => `<label><input type="checkbox" data-col-toggle="${esc(c.key)}" checked> ${esc(c.label)}</label>`).join('')}
    </div>
  `;
  card.insertBefore(bar, card.querySelector('.tablewrap'));

  const search = bar.querySelector('[data-role="search"]');
  const count = bar.querySelector('[data-role="count"]');
  const colPanel = bar.querySelector('[data-role="columns"]');
  const presetButtons = Array.from(bar.querySelectorAll('[data-preset]'));
  const filterBoxes = Array.from(bar.querySelectorAll('[data-filter]'));
  const colBoxes = Array.from(bar.querySelectorAll('[data-col-toggle]'));

  // ---------- render from state ----------
  function apply() {
    const all = Array.from(tbody.rows);
    const shown = new Set(F.visibleRows(all, state));
    all.forEach(tr => { tr.style.display = shown.has(tr) ? '' : 'none'; });
    count.textContent = `Showing ${shown.size} of ${total}`;

    columns.forEach(c => {
      table.querySelectorAll(`[data-col="${c.key}"]`)
        .forEach(cell => cell.classList.toggle('iu-hide', state.hidden.has(c.key)));
    });
    presetButtons.forEach(b => b.classList.toggle('active', b.dataset.preset === state.preset));
  }

  function syncControls() {
    search.value = state.q;
    filterBoxes.forEach(cb => { cb.checked = !!state[cb.dataset.filter]; });
    colBoxes.forEach(cb => { cb.checked = !state.hidden.has(cb.dataset.colToggle); });
  }

  search.addEventListener('input', () => { state.q = search.value.trim().toLowerCase(); apply(); });
  filterBoxes.forEach(cb => cb.addEventListener('change', () => { state[cb.dataset.filter] = cb.checked; apply(); }));
  presetButtons.forEach(b => b.addEventListener('click', () => { state.preset = b.dataset.preset; apply(); }));
  colBoxes.forEach(cb => cb.addEventListener('change', () => {
    if (cb.checked) state.hidden.delete(cb.dataset.colToggle);
    else state.hidden.add(cb.dataset.colToggle);
    apply();
  }));

  // ---------- sorting ----------
  const cellText = (tr, key) => {
    const td = tr.querySelector(`td[data-col="${key}"]`);
    return td ? (td.textContent || '').trim() : '';
  };
  function sortKey(v) {
    if (v === 'Never' || v === 'Never Logged In') return { n: Infinity };
    const n = Number(v);
    return (v !== '' && !isNaN(n)) ? { n } : { s: v.toLowerCase() };
  }
  function compare(a, b) {
    const x = sortKey(a), y = sortKey(b);
    if ('n' in x && 'n' in y) return x.n === y.n ? 0 : (x.n < y.n ? -1 : 1);
    if ('n' in x) return -1;
    if ('n' in y) return 1;
    return x.s.localeCompare(y.s);
  }
  headers.forEach(th => th.addEventListener('click', () => {
    const key = th.dataset.col;
    const dir = th.classList.contains('sort-asc') ? -1 : 1;
    headers.forEach(h => h.classList.remove('sort-asc', 'sort-desc'));
    th.classList.add(dir === 1 ? 'sort-asc' : 'sort-desc');
    Array.from(tbody.rows)
      .sort((a, b) => dir * compare(cellText(a, key), cellText(b, key)))
      .forEach(tr => tbody.appendChild(tr));
    apply();
  }));

  // ---------- CSV export (visible rows × visible columns) ----------
  function exportCsv() {
    const cols = columns.filter(c => !state.hidden.has(c.key));
    const records = F.visibleRows(Array.from(tbody.rows), state)
      .map(tr => cols.map(c => cellText(tr, c.key)));
    const blob = new Blob([F.csvText(cols.map(c => c.label), records)], { type: 'text/csv;charset=utf-8' });
    const a = document.createElement('a');
    a.href = URL.createObjectURL(blob);
    a.download = 'Entra_Inactive_Users_Report.csv';
    document.body.appendChild(a);
    a.click();
    a.remove();
    setTimeout(() => URL.revokeObjectURL(a.href), 1000);
  }

  // ---------- buttons ----------
  const fsButton = bar.querySelector('[data-action="fullscreen"]');
  function setFullscreen(on) {
    card.classList.toggle('iu-fullscreen', on);
    fsButton.textContent = on ? 'Exit fullscreen' : 'Fullscreen';
  }
  fsButton.addEventListener('click', () => setFullscreen(!card.classList.contains('iu-fullscreen')));
  document.addEventListener('keydown', e => { if (e.key === 'Escape') setFullscreen(false); });

  bar.querySelector('[data-action="columns"]').addEventListener('click', () => { colPanel.hidden = !colPanel.hidden; });
  bar.querySelector('[data-action="csv"]').addEventListener('click', exportCsv);
  bar.querySelector('[data-action="reset"]').addEventListener('click', () => {
    state = F.initialState();
    syncControls();
    apply();
  });

  apply();
})();
"""

INACTIVE_JS = INACTIVE_FILTER_JS + INACTIVE_PAGE_JS

# ----------------------- aggregation -----------------------------

def _bucket(days: Optional[int]) -> str:
    if days is None:
        return BUCKET_NEVER
    if days <= 30:
        return BUCKET_30
    if days <= 90:
        return BUCKET_90
    return BUCKET_OVER

def _resolve_licenses(sku_ids: List[str], sku_map: Dict[str, str]) -> str:
    names = [sku_map[s] for s in sku_ids if s in sku_map]
    return ", ".join(names) if names else NO_LICENSE

def _is_external(user_type: str, upn: str) -> bool:
    return user_type == "Guest" or EXTERNAL_MARKER in (upn or "")

def _is_sync_account(upn: str) -> bool:
    return bool(SYNC_ACCOUNT_RE.match(upn or ""))

def _sort_key(row: Dict[str, Any]):
    days = row["interactiveDays"]
    if days == NEVER:
        return (0, 0, row["userPrincipalName"].lower())
    return (1, -days, row["userPrincipalName"].lower())


def aggregate_rows(users: List[Dict[str, Any]], sku_map: Dict[str, str], now: datetime) -> List[Dict[str, Any]]:
    """
    Turn UserRecords into ReportRows. Pure: no I/O, deterministic for a given `now`.
    Rows come back most-inactive first (never signed in at the top).
    """
    rows: List[Dict[str, Any]] = []
    for u in users:
        user_type = u.get("userType") or "Member"
        upn = u.get("userPrincipalName") or ""
        sku_ids = list(u.get("assignedSkuIds") or [])

        int_days = fncDaysSince(u.get("lastSignInDateTime"), now)
        ni_days = fncDaysSince(u.get("lastNonInteractiveSignInDateTime"), now)

        row = dict(u)
        row.update({
            "userType": user_type,
            "assignedSkuIds": sku_ids,
            "isExternal": _is_external(user_type, upn),
            "isSyncAccount": _is_sync_account(upn),
            "interactiveDays": NEVER if int_days is None else int_days,
            "nonInteractiveDays": NEVER if ni_days is None else ni_days,
            "interactiveBucket": _bucket(int_days),
            "nonInteractiveBucket": _bucket(ni_days),
            "neverLoggedIn": int_days is None,
            "licensed": len(sku_ids) > 0,
            "licenses": _resolve_licenses(sku_ids, sku_map),
        })
        rows.append(row)

    rows.sort(key=_sort_key)
    return rows


def summarise(rows: List[Dict[str, Any]]) -> Dict[str, int]:
    enabled = sum(1 for r in rows if r.get("accountEnabled"))
    return {
        "Total Users": len(rows),
        "Enabled": enabled,
        "Disabled": len(rows) - enabled,
        "Licensed": sum(1 for r in rows if r.get("licensed")),
        "External": sum(1 for r in rows if r.get("isExternal")),
        "Never Logged In": sum(1 for r in rows if r.get("neverLoggedIn")),
        "Inactive ≤30 Days": sum(1 for r in rows if r.get("interactiveBucket") == BUCKET_30),
        "Inactive 31–90 Days": sum(1 for r in rows if r.get("interactiveBucket") == BUCKET_90),
        "Inactive >90 Days": sum(1 for r in rows if r.get("interactiveBucket") == BUCKET_OVER),
    }

# ----------------------- rendering -------------------------------

def _display_row(r: Dict[str, Any]) -> Dict[str, Any]:
    """Column values as shown in the table, plus data-* attributes for the script."""
    return {
        "Display Name": r.get("displayName") or "",
        "User Principal Name": r.get("userPrincipalName") or "",
        "User Type": r.get("userType"),
        "Enabled": "Yes" if r.get("accountEnabled") else "No",
        "Created": fncFormatDate(r.get("createdDateTime"), "%Y-%m-%d"),
        "Department": r.get("department") or "",
        "Job Title": r.get("jobTitle") or "",
        "Last Interactive Sign-In": fncFormatDate(r.get("lastSignInDateTime")) or NEVER_LOGGED_IN,
        "Days Since Interactive": r["interactiveDays"],
        "Last Non-Interactive Sign-In": fncFormatDate(r.get("lastNonInteractiveSignInDateTime")) or NEVER_LOGGED_IN,
        "Days Since Non-Interactive": r["nonInteractiveDays"],
        "Licensed": "Yes" if r.get("licensed") else "No",
        "Licenses": r.get("licenses"),
        "Inactivity": r["interactiveBucket"],
        "_attrs": {
            "upn": r.get("userPrincipalName") or "",
            "name": r.get("displayName") or "",
            "external": r.get("isExternal"),
            "enabled": bool(r.get("accountEnabled")),
            "licensed": r.get("licensed"),
            "never": r.get("neverLoggedIn"),
            "sync": r.get("isSyncAccount"),
            "bucket": BUCKET_SLUGS[r["interactiveBucket"]],
            "ni-bucket": BUCKET_SLUGS[r["nonInteractiveBucket"]],
        },
    }


def build_report_data(rows: List[Dict[str, Any]], tenant_name: str, now: datetime) -> Dict[str, Any]:
    summary = summarise(rows)
    kpis = [
        {"label": "Total Users", "value": str(summary["Total Users"]), "tone": "primary"},
        {"label": "Never Logged In", "value": str(summary["Never Logged In"]), "tone": "danger"},
        {"label": "Inactive >90 Days", "value": str(summary["Inactive >90 Days"]), "tone": "warning"},
        {"label": "Licensed", "value": str(summary["Licensed"]), "tone": "success"},
        {"label": "External", "value": str(summary["External"]), "tone": "info"},
        {"label": "Disabled", "value": str(summary["Disabled"]), "tone": "secondary"},
    ]
    return {
        "provider": "entra",
        "timestamp": now.isoformat(),
        "summary": summary,
        "users": [_display_row(r) for r in rows],

        "_kpis": kpis,
        "_pills": {"Inactivity": BUCKET_PILLS},
        "_generated": now.strftime("%Y-%m-%d %H:%M:%S UTC"),
        "_title": f"Entra Inactive Users — {tenant_name}",
        "_subtitle": "Interactive and non-interactive sign-in activity, licences and account state",
        "_container_class": "inactive-users",
        "_inline_css": INACTIVE_CSS,
        "_inline_js": INACTIVE_JS,
    }


def render_report(rows: List[Dict[str, Any]], tenant_name: str, output_dir: str, now: Optional[datetime] = None) -> str:
    """Write <output_dir>/Entra_Inactive_Users_Report.html and return its path."""
    now = now or datetime.now(timezone.utc)
    path = os.path.join(output_dir, REPORT_FILENAME)
    return fncWriteHTMLReport(path, "inactive_users", build_report_data(rows, tenant_name, now))

# --------------------- Module entry point -----------------------

def run(client, args) -> str:
    run_id = fncNewRunId("inactive")
    now = datetime.now(timezone.utc)
    fncPrintMessage(f"Running Entra Inactive Users report (run={run_id})", "info")

    tenant_name, err = fetch_tenant_display_name(client)
    if err:
        fncPrintMessage(f"{err} — using '{tenant_name}'.", "warn")
    else:
        fncPrintMessage(f"Tenant: {tenant_name}", "info")

    users = fetch_all_users(client)

    sku_map, err = fetch_license_sku_map(client)
    if err:
        fncPrintMessage(f"{err} — licence names will not be resolved.", "warn")

    rows = aggregate_rows(users, sku_map, now)
    summary = summarise(rows)

    fncPrintMessage("Inactive Users Summary", "info")
    print(fncToTable(
        [{"Field": k, "Value": v} for k, v in summary.items()],
        headers=["Field", "Value"],
    ))

    stale = [
        _display_row(r) for r in rows
        if r.get("accountEnabled") and r["interactiveBucket"] in (BUCKET_NEVER, BUCKET_OVER)
    ]
    if stale:
        fncPrintMessage("Enabled accounts never used or inactive >90 days (top 20)", "info")
        print(fncToTable(
            stale,
            headers=["User Principal Name", "Last Interactive Sign-In", "Days Since Interactive", "Licenses"],
            max_rows=20,
        ))

    path = render_report(rows, tenant_name, args.output_dir, now)
    fncPrintMessage("Inactive Users report complete.", "success")
    return path
