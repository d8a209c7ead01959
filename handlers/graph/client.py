# ================================================================
# File     : client.py
# Purpose  : Microsoft Graph API read-only client for Entra (Azure AD)
# Notes    : Read-only: GET + pagination. No destructive ops, no retries.
#            - app mode: client credentials (.default)
#            - interactive/device mode: delegated read scopes
#            - Proactive refresh if token expires in <5 minutes
# ================================================================

import time
import getpass
from typing import Dict, Any, List, Optional

import msal
import requests

from core.errors import ApiError, AuthError
from core.utils import fncPrintMessage

GRAPH_ROOT = "https://graph.microsoft.com/v1.0"
APP_SCOPE = ["https://graph.microsoft.com/.default"]

# Read-only delegated scopes: sign-in activity, users, organisation/SKUs
DELEGATED_SCOPES = ["AuditLog.Read.All", "User.Read.All", "Organization.Read.All"]

# Public client used by the Microsoft Graph PowerShell SDK
GRAPH_CLI_CLIENT_ID = "14d82eec-204b-4c2f-b7e8-296a70dab67e"

REQUEST_TIMEOUT = 60


class GraphClient:
    def __init__(
        self,
        tenant_id: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        auth_mode: str = "app",
        scopes: Optional[List[str]] = None,
        authority_host: str = "https://login.microsoftonline.com",
    ):
        self.auth_mode = auth_mode
        self.session = requests.Session()

        if auth_mode == "app":
            tenant_id, client_id, client_secret = self._prompt_app_credentials(
                tenant_id, client_id, client_secret
            )
            self.scope = list(APP_SCOPE)
        else:
            tenant_id = tenant_id or "organizations"
            client_id = client_id or GRAPH_CLI_CLIENT_ID
            self.scope = list(scopes or DELEGATED_SCOPES)

        self.tenant_id = tenant_id
        self.client_id = client_id
        self.authority = f"{authority_host.rstrip('/')}/{tenant_id}"

        fncPrintMessage(f"Initialising Microsoft Graph (read-only) client [{auth_mode}]...", "info")

        try:
            if auth_mode == "app":
                self.app = msal.ConfidentialClientApplication(
                    client_id=client_id,
                    client_credential=client_secret,
                    authority=self.authority,
                )
            else:
                self.app = msal.PublicClientApplication(client_id, authority=self.authority)
        except (ValueError, requests.RequestException) as ex:
            raise AuthError(f"Could not create MSAL application: {ex}", ex)

        self.token: str = ""
        self._token_expires_on: int = 0  # epoch seconds
        self._set_token(self._acquire_token())

        fncPrintMessage("GraphClient initialised (read-only).", "success")

    # ---------- Credential helpers ----------

    @staticmethod
    def _prompt_app_credentials(tenant_id, client_id, client_secret):
        # ENTRA_* environment overrides are already applied by core.config
        if not tenant_id:
            tenant_id = input("Enter Tenant ID: ").strip()
        if not client_id:
            client_id = input("Enter Application (Client) ID: ").strip()
        if not client_secret:
            fncPrintMessage(
                "No Client Secret found. It is only held in memory for this session.",
                "warn",
            )
            client_secret = getpass.getpass("Enter Client Secret (input hidden): ").strip()

        if not all([tenant_id, client_id, client_secret]):
            raise AuthError("Tenant ID, Client ID and Client Secret are all required for app authentication")
        return tenant_id, client_id, client_secret

    # ---------- Token helpers ----------

    def _acquire_token(self) -> Dict[str, Any]:
        """Acquire a token, reusing a cached session when it already grants the scopes."""
        fncPrintMessage("Requesting Microsoft Graph access token...", "debug")
        try:
            result = self._acquire_silent()
            if not result:
                result = self._acquire_fresh()
        except (requests.RequestException, ValueError) as ex:
            raise AuthError(f"MSAL authentication failed: {ex}", ex)

        if not result or "access_token" not in result:
            reason = (result or {}).get("error_description") or (result or {}).get("error") or "Unknown error"
            fncPrintMessage(f"MSAL Authentication failed: {reason}", "error")
            raise AuthError(f"Failed to acquire access token: {reason}")
        return result

    def _acquire_silent(self) -> Optional[Dict[str, Any]]:
        if self.auth_mode == "app":
            return self.app.acquire_token_silent(self.scope, account=None)
        accounts = self.app.get_accounts()
        if not accounts:
            return None
        fncPrintMessage(f"Found cached account: {accounts[0].get('username')}", "debug")
        return self.app.acquire_token_silent(self.scope, account=accounts[0])

    def _acquire_fresh(self) -> Optional[Dict[str, Any]]:
        if self.auth_mode == "app":
            return self.app.acquire_token_for_client(scopes=self.scope)

        if self.auth_mode == "device":
            flow = self.app.initiate_device_flow(scopes=self.scope)
            if "user_code" not in flow:
                return flow
            fncPrintMessage(flow["message"], "info")
            return self.app.acquire_token_by_device_flow(flow)

        fncPrintMessage(f"Opening browser for sign-in (scopes: {', '.join(self.scope)})", "info")
        return self.app.acquire_token_interactive(scopes=self.scope)

    def _set_token(self, msal_result: Dict[str, Any]) -> None:
        self.token = msal_result["access_token"]
        self._token_expires_on = int(time.time()) + int(msal_result.get("expires_in", 3600))

    def _ensure_fresh_token(self) -> None:
        """Proactively refresh token if it expires in <5 minutes."""
        now = int(time.time())
        if now >= (self._token_expires_on - 300):
            fncPrintMessage("Refreshing access token (nearing expiry)...", "debug")
            self._set_token(self._acquire_token())

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/json",
        }

    # ---------- HTTP handling ----------

    def _handle_response(self, response: requests.Response) -> Dict[str, Any]:
        status = response.status_code

        if status == 200:
            return response.json()

        try:
            err = (response.json().get("error") or {})
        except ValueError:
            err = {}
        code = err.get("code") or ""
        msg = err.get("message") or ""
        snippet = (response.text or "")[:300]

        fncPrintMessage(f"Graph API Error [{status}] {code} -> {msg or snippet}", "debug")
        detail = f": {code} {msg}".rstrip() if (code or msg) else ""
        raise ApiError(
            status,
            response.url,
            f"Graph API request failed with status {status}{detail}",
            snippet,
        )

    def _request(self, method: str, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        self._ensure_fresh_token()
        try:
            resp = self.session.request(
                method, url, headers=self._auth_headers(), params=params, timeout=REQUEST_TIMEOUT
            )
        except requests.RequestException as ex:
            raise ApiError(-1, url, f"Graph API request could not be sent: {ex}") from ex
        return self._handle_response(resp)

    # ---------- Public API ----------

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Perform a GET request to a Graph endpoint (single page).
        Use get_all for paginated resources.
        """
        url = f"{GRAPH_ROOT}/{endpoint.strip().lstrip('/')}"
        fncPrintMessage(f"GET {url}", "debug")
        return self._request("GET", url, params=params)

    def get_all(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Retrieve all items from a paginated Graph endpoint.
        Returns a flat list of items (value) for list endpoints.
        Example: client.get_all("users", params={"$select": "id,displayName"})
        """
        url = f"{GRAPH_ROOT}/{endpoint.strip().lstrip('/')}"
        fncPrintMessage(f"GET (all pages) {url}", "debug")

        data = self._request("GET", url, params=params)
        if not isinstance(data, dict):
            return []
        if "value" not in data:
            return [data]

        items: List[Dict[str, Any]] = list(data.get("value") or [])
        next_link = data.get("@odata.nextLink")

        # nextLink already carries the original query string
        while next_link:
            fncPrintMessage(f"Following nextLink -> {next_link}", "debug")
            page = self._request("GET", next_link)
            items.extend(page.get("value") or [])
            next_link = page.get("@odata.nextLink")

        return items
