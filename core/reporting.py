# ================================================================
# File     : core/reporting.py
# Purpose  : Render one self-contained HTML report from a module
#            payload: header, KPI cards, summary table, data tables
#            and module-injected CSS/JS.
# Notes    : Payload keys starting with "_" are render hints.
#            Row dicts may carry "_attrs" → data-* on <tr>.
#            Every cell and attribute value is HTML-escaped.
# ================================================================

import os
import re
import html
import datetime
from typing import Any, Dict, List, Optional, Tuple

from core.errors import ReportWriteError
from core.utils import fncPrintMessage


# ---------- escaping / naming ----------

def _esc(v: Any) -> str:
    return "" if v is None else html.escape(str(v), quote=True)

def _slug(name: Any) -> str:
    return re.sub(r"[^a-z0-9]+", "-", str(name).lower()).strip("-")

def _attr_name(key: str) -> str:
    return "data-" + _slug(key)

def _attr_value(val: Any) -> str:
    # booleans as JS-friendly literals
    if isinstance(val, bool):
        return "true" if val else "false"
    return _esc(val)

def _section_title(key: str, titles: Dict[str, str]) -> str:
    return titles.get(key) or key.replace("_", " ").title()


# ---------- page CSS ----------

PAGE_CSS = """
:root{
  --hound:#2f6f4f; --hound2:#c9822b;
  --ink:#1d2521; --paper:#f4f6f3; --card:#ffffff; --border:#dde3dc; --muted:#6a766d;
  --ok:#2e9e63; --warn:#d98b17; --crit:#d64545; --unknown:#7b8794;
}
@media (prefers-color-scheme: dark){
  :root{ --ink:#e6ece7; --paper:#111612; --card:#1a211c; --border:#2b352e; --muted:#99a89d; }
}
*{box-sizing:border-box}
body{margin:0;font:14.5px/1.5 "Segoe UI",Roboto,Helvetica,Arial,sans-serif;background:var(--paper);color:var(--ink)}

.masthead{background:linear-gradient(115deg,var(--hound) 0%,#3d8a63 60%,var(--hound2) 100%);
  color:#fff;padding:20px 30px 18px 30px;display:flex;justify-content:space-between;align-items:flex-start;gap:16px}
.masthead h1{margin:0;font-size:1.75rem;font-weight:800}
.masthead h2{margin:2px 0 0 0;font-size:1.15rem;font-weight:500}
.masthead .meta{margin:6px 0 0 0;font-size:.88rem;opacity:.85}
.masthead .tag{flex:none;padding:4px 12px;border-radius:6px;background:rgba(255,255,255,.16);
  font-weight:700;letter-spacing:.08em;font-size:.8rem}

.container{max-width:1880px;margin:22px auto;padding:20px 24px;width:96%;
  background:var(--card);border:1px solid var(--border);border-radius:10px}
h3{margin:18px 0 8px 0;color:var(--hound);font-weight:700}
.card{margin:18px 0}
.card h4{margin:0 0 6px 0;font-size:1.05rem}
.tablewrap{overflow-x:auto}

table{width:100%;border-collapse:collapse;margin-top:6px;font-size:.92rem}
th,td{padding:8px 10px;border-bottom:1px solid var(--border);text-align:left;vertical-align:top;overflow-wrap:anywhere}
th{background:var(--hound);color:#fff;font-weight:600;white-space:nowrap}
tbody tr:hover td{background:color-mix(in srgb,var(--hound) 8%,transparent)}
table.summary{width:auto;min-width:420px}
table.summary th{background:transparent;color:var(--muted);font-weight:600;padding-right:40px}
table.summary td{font-weight:700;font-variant-numeric:tabular-nums}

.pill{display:inline-block;padding:1px 9px;border-radius:999px;font-weight:700;font-size:.8rem;white-space:nowrap}
.pill.ok{color:var(--ok);background:color-mix(in srgb,var(--ok) 15%,transparent)}
.pill.warn{color:var(--warn);background:color-mix(in srgb,var(--warn) 15%,transparent)}
.pill.crit{color:var(--crit);background:color-mix(in srgb,var(--crit) 15%,transparent)}
.pill.unknown{color:var(--unknown);background:color-mix(in srgb,var(--unknown) 15%,transparent)}

.kpis{display:grid;grid-template-columns:repeat(auto-fit,minmax(180px,1fr));gap:12px;margin-bottom:6px}
.kpi{border:1px solid var(--border);border-left:5px solid var(--tone,var(--hound));border-radius:8px;padding:10px 14px}
.kpi .label{color:var(--muted);font-size:.85rem;font-weight:600}
.kpi .value{font-size:1.7rem;font-weight:800;font-variant-numeric:tabular-nums}
.kpi.primary{--tone:var(--hound)} .kpi.success{--tone:var(--ok)} .kpi.warning{--tone:var(--warn)}
.kpi.danger{--tone:var(--crit)} .kpi.info{--tone:#2b8cc4} .kpi.secondary{--tone:var(--unknown)}

.footer{text-align:center;color:var(--muted);font-size:.85rem;margin:20px auto 14px auto}
"""


# ---------- page blocks ----------

def _header_html(title: str, subtitle: Optional[str], generated: str) -> str:
    sub = f'<p class="meta">{_esc(subtitle)}</p>' if subtitle else ""
    return f"""
  <header class="masthead">
    <div>
      <h1>🐕 IdleHound Report</h1>
      <h2>{_esc(title)}</h2>
      {sub}
      <p class="meta">Generated on {_esc(generated)}</p>
    </div>
    <span class="tag">MICROSOFT ENTRA ID</span>
  </header>
"""

def _kpis_html(kpis: List[Dict[str, Any]]) -> str:
    if not kpis:
        return ""
    cards = []
    for k in kpis:
        tone = _slug(k.get("tone") or "primary")
        cards.append(
            f'<div class="kpi {tone}" data-kpi="{_slug(k.get("label", ""))}">'
            f'<div class="label">{_esc(k.get("label"))}</div>'
            f'<div class="value">{_esc(k.get("value"))}</div></div>'
        )
    return f'<div class="kpis">{"".join(cards)}</div>'

def _summary_html(summary: Dict[str, Any]) -> str:
    if not summary:
        return "<p>No summary available.</p>"
    body = "".join(f"<tr><th>{_esc(k)}</th><td>{_esc(v)}</td></tr>" for k, v in summary.items())
    return f"<table class='summary'>{body}</table>"

def _cell_html(col: str, value: Any, pills: Dict[str, Dict[str, str]]) -> str:
    css = (pills.get(col) or {}).get(str(value))
    inner = f"<span class='pill {css}'>{_esc(value)}</span>" if css else _esc(value)
    return f"<td data-col='{_slug(col)}'>{inner}</td>"


def _table_html(rows: List[Dict[str, Any]], title: str, pills: Dict[str, Dict[str, str]]) -> str:
    """
    Columns come from the first row's keys, minus "_"-prefixed hints.
    Each th/td carries data-col=<slug> so scripts address columns by name.
    pills = {column: {cell value: css class}}.
    """
    if not rows:
        return f"<div class='card'><h4>{_esc(title)}</h4><p>No rows.</p></div>"

    cols = [c for c in rows[0] if not str(c).startswith("_")]
    head = "".join(f"<th data-col='{_slug(c)}'>{_esc(c)}</th>" for c in cols)

    body = []
    for r in rows:
        attrs = "".join(
            f' {_attr_name(k)}="{_attr_value(v)}"' for k, v in (r.get("_attrs") or {}).items()
        )
        cells = "".join(_cell_html(c, r.get(c, ""), pills) for c in cols)
        body.append(f"<tr{attrs}>{cells}</tr>")

    return f"""
    <div class="card">
      <h4>{_esc(title)}</h4>
      <div class="tablewrap">
        <table id="tbl-{_slug(title)}">
          <thead><tr>{head}</tr></thead>
          <tbody>{"".join(body)}</tbody>
        </table>
      </div>
    </div>
    """

def _tables_html(payload: Dict[str, Any]) -> str:
    titles = payload.get("_section_titles") or {}
    pills = payload.get("_pills") or {}
    out = []
    for key, val in payload.items():
        if key == "summary" or key.startswith("_"):
            continue
        if isinstance(val, list) and val and isinstance(val[0], dict):
            out.append(_table_html(val, _section_title(key, titles), pills))
    return "\n".join(out)

def _module_assets(payload: Dict[str, Any]) -> Tuple[str, str, str]:
    """(css, js, container_class) with module CSS appended after the page CSS."""
    css = PAGE_CSS + (payload.get("_inline_css") or "")
    js = payload.get("_inline_js") or ""
    return css, js, payload.get("_container_class") or ""


# ================================================================
# Function: fncBuildHTMLReport
# Purpose : Assemble the full HTML document for one report payload
# ================================================================
def fncBuildHTMLReport(module_name: str, payload: Dict[str, Any]) -> str:
    css, js, container_class = _module_assets(payload)

    generated = payload.get("_generated") or \
        datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
    title = payload.get("_title") or f"Module: {module_name}"
    container = f"container {_esc(container_class)}".strip()
    script = f"<script>{js}</script>" if js else ""

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>{_esc(title)}</title>
<style>{css}</style>
</head>
<body>
{_header_html(title, payload.get("_subtitle"), generated)}
<main class="{container}">
  {_kpis_html(payload.get("_kpis") or [])}
  <h3>Summary</h3>
  {_summary_html(payload.get("summary") or {})}
  {_tables_html(payload)}
</main>
<footer class="footer">IdleHound 🐕 · read-only Microsoft Graph snapshot</footer>
{script}
</body>
</html>"""


# ================================================================
# Function: fncWriteHTMLReport
# Purpose : Render and write a single-module HTML report
# Notes   : Creates the folder; ReportWriteError if it cannot write
# ================================================================
def fncWriteHTMLReport(filename: str, module_name: str, payload: Dict[str, Any]) -> str:
    fncPrintMessage(f"Rendering {module_name} report → {filename}", "info")
    document = fncBuildHTMLReport(module_name, payload)

    try:
        os.makedirs(os.path.dirname(filename) or ".", exist_ok=True)
        with open(filename, "w", encoding="utf-8") as f:
            f.write(document)
    except OSError as ex:
        raise ReportWriteError(f"Could not write report '{filename}': {ex}") from ex

    fncPrintMessage(f"Report saved: {filename}", "success")
    return filename
