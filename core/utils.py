# ================================================================
# File     : utils.py
# Purpose  : Common helpers for IdleHound (console, files, time, data)
# Notes    : British English; levelled console output; Graph dates
# ================================================================

import os
import re
import json
import uuid
import pathlib
import random
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from colorama import Fore, Style, init as _colorama_init
from tabulate import tabulate

_colorama_init(autoreset=True)

DEBUG_ENABLED = False

# ================================================================
# Function: fncSetDebug
# Purpose : Globally enable/disable debug output
# Notes   : Called from main after parsing --debug
# ================================================================
def fncSetDebug(enabled: bool) -> None:
    global DEBUG_ENABLED
    DEBUG_ENABLED = bool(enabled)


# ================================================================
# Function: fncPrintMessage
# Purpose : Standardised console output with levels and colours
# Notes   : Levels: info, warn, error, success, debug
# ================================================================
def fncPrintMessage(message: str, level: str = "info") -> None:
    if level == "debug" and not DEBUG_ENABLED:
        return
    colours = {
        "info": Fore.CYAN,
        "warn": Fore.YELLOW,
        "error": Fore.RED,
        "success": Fore.GREEN,
        "debug": Fore.MAGENTA
    }
    prefix = {
        "info": "[•]",
        "warn": "[!]",
        "error": "[✗]",
        "success": "[✓]",
        "debug": "[∆]"
    }
    colour = colours.get(level, "")
    mark = prefix.get(level, "[ ]")
    print(f"{colour}{mark} {message}{Style.RESET_ALL}")


# ================================================================
# Function: fncDisplayBanner
# Purpose : Display IdleHound ASCII banner in rainbow colours
# Notes   : Hound mascot sits to the right of the title
# ================================================================
def fncDisplayBanner(version: str = "v1.0"):
    banner_lines = [
        r" ___    _ _      _   _                       _ ",
        r"|_ _|__| | | ___| | | | ___  _   _ _ __   __| |",
        r" | |/ _` | |/ _ \ |_| |/ _ \| | | | '_ \ / _` |",
        r" | | (_| | |  __/  _  | (_) | |_| | | | | (_| |",
        r"|___\__,_|_|\___|_| |_|\___/ \__,_|_| |_|\__,_|",
    ]

    hound_lines = [
        r"    / \__       ",
        r"   (    @\___   ",
        r"   /         O  ",
        r"  /   (_____/   ",
        r" /_____/   U    ",
    ]

    colours = [Fore.RED, Fore.YELLOW, Fore.GREEN, Fore.BLUE]

    def rainbow(text: str) -> str:
        out = ""
        for i, ch in enumerate(text):
            out += colours[i % len(colours)] + ch
        return out + Style.RESET_ALL

    print("\n")

    max_banner_len = max(len(line) for line in banner_lines)
    for i, banner_part in enumerate(banner_lines):
        line = banner_part.ljust(max_banner_len + 5)
        if i < len(hound_lines):
            line += hound_lines[i]
        print(rainbow(line))

    print(f"{Fore.CYAN}\nIdleHound {version} — 'Sniffing out the accounts nobody uses.'{Style.RESET_ALL}\n")


# ================================================================
# Function: fncBlurb
# Purpose : Display a short blurb describing the current action
# ================================================================
def fncBlurb(flavour: str = None):
    blurbs = [
        "Following the sign-in scent trail through Entra…",
        "Nose to the ground, counting the days since last login…",
        "Checking which licences are gathering dust…",
    ]
    fncPrintMessage(flavour or random.choice(blurbs), "info")


# ================================================================
# Function: fncEnsureFolder
# Purpose : Create a folder if it does not exist
# Notes   : Returns pathlib.Path object
# ================================================================
def fncEnsureFolder(path: str) -> pathlib.Path:
    p = pathlib.Path(path).expanduser().resolve()
    p.mkdir(parents=True, exist_ok=True)
    return p


# ================================================================
# Function: fncLoadEnv
# Purpose : Read environment variable with default
# Notes   : Strips quotes; returns default if unset
# ================================================================
def fncLoadEnv(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.getenv(name, default)
    if isinstance(val, str):
        return val.strip().strip('"').strip("'")
    return val


# ================================================================
# Function: fncReadJSON
# Purpose : Load JSON from file safely
# Notes   : Returns {} on failure when safe=True
# ================================================================
def fncReadJSON(path: str, safe: bool = True) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as ex:
        if safe:
            fncPrintMessage(f"Could not read JSON '{path}': {ex}", "warn")
            return {}
        raise


# ================================================================
# Function: fncWriteJSON
# Purpose : Write data to JSON with nice formatting
# Notes   : Ensures parent folder exists; UTF-8; 2-space indent
# ================================================================
def fncWriteJSON(path: str, data: Dict[str, Any]) -> None:
    p = pathlib.Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    fncPrintMessage(f"Saved JSON → {p}", "debug")


# ================================================================
# Function: fncParseGraphDate
# Purpose : Parse a Graph ISO-8601 timestamp into an aware UTC datetime
# Notes   : Fractional seconds padded or trimmed to 6 digits.
#           Returns None for empty/unparseable values.
# ================================================================
_FRACTION_RE = re.compile(r"\.(\d+)")

def fncParseGraphDate(val: Any) -> Optional[datetime]:
    if not val:
        return None
    if isinstance(val, datetime):
        return val if val.tzinfo else val.replace(tzinfo=timezone.utc)
    s = str(val).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    s = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), s, count=1)
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    return dt.astimezone(timezone.utc) if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


# ================================================================
# Function: fncDaysSince
# Purpose : Whole days between a timestamp and 'now'
# Notes   : Future timestamps clamp to 0
# ================================================================
def fncDaysSince(dt: Optional[datetime], now: datetime) -> Optional[int]:
    if dt is None:
        return None
    return max(0, (now - dt).days)


def fncFormatDate(dt: Optional[datetime], fmt: str = "%Y-%m-%d %H:%M") -> str:
    return dt.strftime(fmt) if dt else ""


# ================================================================
# Function: fncToTable
# Purpose : Render rows as a table string
# Notes   : Supports list[dict] (keys become headers) or list[list]
# ================================================================
def fncToTable(rows: Iterable[Any], headers: Optional[List[str]] = None, max_rows: Optional[int] = None) -> str:
    rows = list(rows)
    truncated = 0
    if max_rows and len(rows) > max_rows:
        truncated = len(rows) - max_rows
        rows = rows[:max_rows]

    if not rows:
        return "(no data)"

    if isinstance(rows[0], dict):
        hdrs = headers or sorted({k for r in rows for k in r.keys()})
        table_rows = [[r.get(h, "") for h in hdrs] for r in rows]
        out = tabulate(table_rows, headers=hdrs, tablefmt="github")
    else:
        out = tabulate(rows, headers=(headers or "firstrow"), tablefmt="github")

    if truncated:
        out += f"\n… +{truncated} more"
    return out


# ================================================================
# Function: fncMask
# Purpose : Mask sensitive strings (client secrets, tokens)
# Notes   : Keeps start/end visible; handles short strings
# ================================================================
def fncMask(value: Optional[str], show: int = 4) -> str:
    if not value:
        return ""
    if len(value) <= show * 2:
        return "*" * len(value)
    return f"{value[:show]}{'*' * (len(value) - (show*2))}{value[-show:]}"


# ================================================================
# Function: fncNewRunId
# Purpose : Generate a short unique run identifier
# Notes   : Useful for correlating console output and reports
# ================================================================
def fncNewRunId(prefix: str = "run") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"
