#!/usr/bin/env python3
# ================================================================
# Tool     : IdleHound
# Purpose  : Entra ID inactive-users report (sign-ins, licences)
# Notes    : "Sniffing out the accounts nobody uses." 🐕
# ================================================================

import argparse
import pathlib
import sys
import webbrowser

from core.config import fncInitConfig, fncApplyCliOverrides, fncIsDebug, fncGetEntraConfig
from core.errors import ApiError, AuthError, ReportWriteError
from core.utils import fncPrintMessage, fncSetDebug, fncDisplayBanner, fncBlurb, fncMask
from modules.entra import inactive_users

# ================================================================
# Function: fncParseArguments
# Purpose  : Define and parse command-line arguments for IdleHound
# ================================================================
def fncParseArguments(argv=None):
    parser = argparse.ArgumentParser(
        prog="IdleHound",
        description="IdleHound 🐕 — Entra ID inactive users report"
    )

    parser.add_argument(
        "output_dir",
        help="Folder to write Entra_Inactive_Users_Report.html into (created if missing)"
    )

    parser.add_argument(
        "--open",
        action="store_true",
        help="Open the report in the default browser when finished"
    )

    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.json (default: ~/.idlehound/config.json)"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable verbose debug output"
    )

    return parser.parse_args(argv)


# ================================================================
# Function: fncInitClient
# Purpose  : Build the read-only Graph client from the Entra config
# Notes    : Missing app credentials are prompted for by GraphClient
# ================================================================
def fncInitClient(cfg: dict):
    from handlers.graph.client import GraphClient

    entra = fncGetEntraConfig(cfg)
    fncPrintMessage(
        f"Auth mode: {entra['auth_mode']} "
        f"(tenant={entra.get('tenant_id') or '-'}, secret={fncMask(entra.get('client_secret')) or '-'})",
        "debug",
    )

    return GraphClient(
        tenant_id=entra.get("tenant_id"),
        client_id=entra.get("client_id"),
        client_secret=entra.get("client_secret"),
        auth_mode=entra["auth_mode"],
        authority_host=entra.get("authority") or "https://login.microsoftonline.com",
    )


def fncOpenReport(path: str) -> None:
    uri = pathlib.Path(path).resolve().as_uri()
    fncPrintMessage(f"Opening report → {uri}", "info")
    if not webbrowser.open(uri):
        fncPrintMessage("No browser available; open the report manually.", "warn")


# ================================================================
# Function: main
# Purpose  : Main entry point for IdleHound execution
# Notes    : Returns the process exit code (0 ok, 1 fatal error)
# ================================================================
def main(argv=None) -> int:
    args = fncParseArguments(argv)

    try:
        cfg = fncInitConfig(args.config)
    except OSError as ex:
        fncPrintMessage(f"Could not load configuration: {ex}", "error")
        return 1
    cfg = fncApplyCliOverrides(cfg, args)
    fncSetDebug(fncIsDebug(cfg))

    fncDisplayBanner("v1.0")
    fncBlurb()
    if fncIsDebug(cfg):
        fncPrintMessage("Debug output enabled.", "debug")

    try:
        client = fncInitClient(cfg)
        report_path = inactive_users.run(client, args)
    except (AuthError, ApiError, ReportWriteError) as ex:
        fncPrintMessage(f"{type(ex).__name__}: {ex}", "error")
        original = getattr(ex, "original_error", None) or ex.__cause__
        if original:
            fncPrintMessage(f"Caused by: {original!r}", "debug")
        return 1

    if args.open:
        fncOpenReport(report_path)

    fncPrintMessage("Hunt complete. Tail wag achieved.", "success")
    return 0


if __name__ == "__main__":
    sys.exit(main())
