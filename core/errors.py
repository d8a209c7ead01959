# ================================================================
# File     : errors.py
# Purpose  : Exception types shared by the Graph client, directory
#            fetchers and the report writer
# Notes    : Auth/Api/ReportWrite are fatal; DegradedFetchError is
#            returned (not raised) for optional lookups
# ================================================================

from typing import Optional


class AuthError(Exception):
    """Could not establish a Graph session with the required scopes."""
    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(message)


class ApiError(Exception):
    def __init__(self, status: int, url: str, message: str = "", body_snippet: str = ""):
        super().__init__(message or f"Graph API request failed with status {status} ({url})")
        self.status = status
        self.url = url
        self.body_snippet = body_snippet


class DegradedFetchError(Exception):
    """An optional lookup failed; the run continues with a default value."""
    def __init__(self, what: str, original_error: Optional[Exception] = None):
        self.what = what
        self.original_error = original_error
        detail = f": {original_error}" if original_error else ""
        super().__init__(f"Could not fetch {what}{detail}")


class ReportWriteError(OSError):
    pass
