# ================================================================
# File     : handlers/graph/directory.py
# Purpose  : Directory lookups used by the inactive-users report
#            (users with sign-in activity, licence SKUs, tenant name)
# Notes    : Users are mandatory: errors propagate. SKU map and tenant
#            name are optional: (default, DegradedFetchError) on failure.
# ================================================================

from typing import Any, Dict, List, Optional, Tuple

from core.errors import ApiError, AuthError, DegradedFetchError
from core.utils import fncPrintMessage, fncParseGraphDate

UNKNOWN_ORGANIZATION = "Unknown Organization"

# Fields the report cannot be built without
REQUIRED_USER_PROPERTIES = [
    "id",
    "userPrincipalName",
    "accountEnabled",
    "createdDateTime",
    "signInActivity",
    "assignedLicenses",
]

USER_PROPERTIES = REQUIRED_USER_PROPERTIES + [
    "displayName",
    "userType",
    "department",
    "jobTitle",
]


def _select_fields(properties: Optional[List[str]]) -> List[str]:
    fields: List[str] = []
    for f in list(properties or []) + REQUIRED_USER_PROPERTIES:
        if f not in fields:
            fields.append(f)
    return fields


def _to_user_record(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten a Graph user into the report's UserRecord shape."""
    si = raw.get("signInActivity") or {}
    sku_ids = [
        lic.get("skuId") for lic in (raw.get("assignedLicenses") or [])
        if isinstance(lic, dict) and lic.get("skuId")
    ]
    return {
        "id": raw.get("id"),
        "userPrincipalName": raw.get("userPrincipalName") or "",
        "displayName": raw.get("displayName") or "",
        "userType": raw.get("userType"),
        "accountEnabled": bool(raw.get("accountEnabled", False)),
        "createdDateTime": fncParseGraphDate(raw.get("createdDateTime")),
        "department": raw.get("department"),
        "jobTitle": raw.get("jobTitle"),
        "lastSignInDateTime": fncParseGraphDate(si.get("lastSignInDateTime")),
        "lastNonInteractiveSignInDateTime": fncParseGraphDate(si.get("lastNonInteractiveSignInDateTime")),
        "assignedSkuIds": sku_ids,
    }


def fetch_all_users(client, properties: Optional[List[str]] = None) -> List[Dict[str, Any]]:
    """
    Enumerate every user with sign-in activity and licence assignments.
    Raises AuthError / ApiError; a partial user list is never returned.
    """
    fields = _select_fields(properties or USER_PROPERTIES)
    fncPrintMessage(f"Fetching users ($select={','.join(fields)})", "debug")
    raw_users = client.get_all("users", params={"$select": ",".join(fields)})
    users = [_to_user_record(u) for u in raw_users if isinstance(u, dict)]
    fncPrintMessage(f"Retrieved {len(users)} user(s).", "info")
    return users


def fetch_license_sku_map(client) -> Tuple[Dict[str, str], Optional[DegradedFetchError]]:
    """Return ({skuId: skuPartNumber}, error). The map is empty when the lookup fails."""
    try:
        skus = client.get_all("subscribedSkus", params={"$select": "skuId,skuPartNumber"})
    except (ApiError, AuthError) as ex:
        return {}, DegradedFetchError("licence SKUs", ex)

    sku_map: Dict[str, str] = {}
    for sku in skus:
        sku_id = sku.get("skuId")
        if sku_id:
            sku_map[sku_id] = sku.get("skuPartNumber") or sku_id
    fncPrintMessage(f"Loaded {len(sku_map)} SKU mapping(s).", "debug")
    return sku_map, None


def fetch_tenant_display_name(client) -> Tuple[str, Optional[DegradedFetchError]]:
    """Return (displayName, error); 'Unknown Organization' when it cannot be read."""
    try:
        data = client.get("organization", params={"$select": "id,displayName"})
    except (ApiError, AuthError) as ex:
        return UNKNOWN_ORGANIZATION, DegradedFetchError("tenant display name", ex)

    orgs = (data.get("value") if isinstance(data, dict) else None) or []
    name = next((o.get("displayName") for o in orgs if o.get("displayName")), None)
    if not name:
        return UNKNOWN_ORGANIZATION, DegradedFetchError("tenant display name")
    return name, None
