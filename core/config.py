# ================================================================
# File     : config.py
# Purpose  : Configuration management for IdleHound
# Notes    : Handles initial creation and loading of config
# ================================================================

import pathlib
from core.utils import fncPrintMessage, fncEnsureFolder, fncReadJSON, fncWriteJSON, fncLoadEnv

AUTH_MODES = ("app", "interactive", "device")


def fncDefaultConfigPath() -> pathlib.Path:
    return pathlib.Path.home() / ".idlehound" / "config.json"


# ================================================================
# Function: fncDefaultConfig
# Purpose : Return a default configuration dictionary
# Notes   : Called when config file does not exist
# ================================================================
def fncDefaultConfig() -> dict:
    return {
        "version": "1.0",
        "debug": False,
        "providers": {
            "entra": {
                "tenant_id": "",
                "client_id": "",
                "client_secret": "",
                "authority": "https://login.microsoftonline.com",
                "auth_mode": "",
            }
        }
    }


# ================================================================
# Function: fncInitConfig
# Purpose : Create or load configuration file
# Notes   : Ensures base folder exists; returns full config dict
# ================================================================
def fncInitConfig(config_path: str = None) -> dict:
    path = pathlib.Path(config_path or fncDefaultConfigPath())

    fncEnsureFolder(path.parent)

    if not path.exists():
        fncPrintMessage(f"No config found at {path}. Creating default...", "warn")
        cfg = fncDefaultConfig()
        fncWriteJSON(str(path), cfg)
        return fncApplyEnvOverrides(cfg)
    return fncLoadConfig(str(path))


# ================================================================
# Function: fncLoadConfig
# Purpose : Load configuration file and apply environment overrides
# Notes   : Missing keys are filled from the defaults
# ================================================================
def fncLoadConfig(config_path: str) -> dict:
    cfg = fncDefaultConfig()
    loaded = fncReadJSON(config_path)

    cfg["debug"] = bool(loaded.get("debug", cfg["debug"]))
    cfg["providers"]["entra"].update((loaded.get("providers") or {}).get("entra") or {})

    fncPrintMessage(f"Loaded configuration from {config_path}", "debug")
    return fncApplyEnvOverrides(cfg)


# ================================================================
# Function: fncApplyEnvOverrides
# Purpose : Overlay ENTRA_* environment variables onto the config
# Notes   : Useful in CI/CD or containers
# ================================================================
def fncApplyEnvOverrides(cfg: dict) -> dict:
    entra = cfg["providers"]["entra"]
    entra.update({
        "tenant_id": fncLoadEnv("ENTRA_TENANT_ID", entra.get("tenant_id")),
        "client_id": fncLoadEnv("ENTRA_CLIENT_ID", entra.get("client_id")),
        "client_secret": fncLoadEnv("ENTRA_CLIENT_SECRET", entra.get("client_secret")),
        "auth_mode": fncLoadEnv("ENTRA_AUTH_MODE", entra.get("auth_mode")),
    })
    return cfg


# ================================================================
# Function: fncGetEntraConfig
# Purpose : Return the Entra block with a resolved auth_mode
# Notes   : app when a client secret is present, else interactive
# ================================================================
def fncGetEntraConfig(cfg: dict) -> dict:
    entra = dict(cfg.get("providers", {}).get("entra", {}))
    mode = (entra.get("auth_mode") or "").strip().lower()
    if not mode:
        mode = "app" if entra.get("client_secret") else "interactive"
    if mode not in AUTH_MODES:
        fncPrintMessage(f"Unknown auth_mode '{mode}', falling back to interactive.", "warn")
        mode = "interactive"
    entra["auth_mode"] = mode
    return entra


# ================================================================
# Function: fncApplyCliOverrides
# Purpose : Apply command-line flags to the loaded config
# Notes   : Only --debug can switch debug on; absence keeps config
# ================================================================
def fncApplyCliOverrides(cfg: dict, args) -> dict:
    if getattr(args, "debug", False):
        cfg["debug"] = True
    return cfg


def fncIsDebug(cfg: dict) -> bool:
    return bool(cfg.get("debug", False))
