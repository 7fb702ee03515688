"""
extp - Exception Classes

Errors raised while talking to Grafana or to the provision service.
Every error carries a short error code and the HTTP status the caller
should see.
"""
from __future__ import annotations


class ExtpError(Exception):
    """Base exception for all extp errors"""

    error_code = "ExtpError"
    status_code = 500

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        body: bytes | None = None,
    ):
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        if status_code is not None:
            self.status_code = status_code
        self.body = body
        # Name of the workflow step that raised, if any
        self.step: str | None = None

    @property
    def body_text(self) -> str:
        if not self.body:
            return ""
        return self.body.decode("utf-8", errors="replace")


class TransportError(ExtpError):
    """Raised when a remote service could not be reached"""

    error_code = "TransportError"
    status_code = 500


class DecodeError(ExtpError):
    """Raised when a response body does not parse as expected"""

    error_code = "UnmarshalError"


class HTTPStatusError(ExtpError):
    """Raised when a remote service replies with an unexpected status"""

    error_code = "Non200"

    def __init__(self, status_code: int, body: bytes | None = None, message: str | None = None):
        text = body.decode("utf-8", errors="replace") if body else ""
        super().__init__(
            message or f"got code {status_code}: {text}",
            status_code=status_code,
            body=body,
        )


# Provision service


class AccountLookupFailed(HTTPStatusError):
    error_code = "AccountLookupFailed"


class KeyCheckFailed(HTTPStatusError):
    error_code = "KeyCheckFailed"


class DomainError(ExtpError):
    """Business rule failure, distinct from transport or protocol failures"""

    error_code = "DomainError"
    status_code = 401


class NoParentAccount(DomainError):
    error_code = "NoParentAccount"

    def __init__(self, account_id: str):
        super().__init__(f"account {account_id} does not have a parent")
        self.account_id = account_id


class ParentAccountNotFound(DomainError):
    error_code = "ParentAccountNotFound"

    def __init__(self, account_id: str):
        super().__init__(f"{account_id} account not found.")
        self.account_id = account_id


class AccessDenied(ExtpError):
    """Raised by the request layer when an access key is rejected"""

    error_code = "E401"
    status_code = 401


# Grafana


class OrgLookupFailed(HTTPStatusError):
    error_code = "GetOrgNon200"


class OrgCreateFailed(HTTPStatusError):
    error_code = "OrgCreateFailed"


class UserCreateFailed(HTTPStatusError):
    error_code = "UserCreateFailed"


class UserUnbindFailed(HTTPStatusError):
    error_code = "UserUnbindFailed"


class UserBindFailed(HTTPStatusError):
    error_code = "UserBindFailed"


class EnablePluginFailed(HTTPStatusError):
    error_code = "EnablePluginNon200"


class CreateDatasourceFailed(HTTPStatusError):
    error_code = "CreateDatasourceNon200"


class DashboardLookupFailed(HTTPStatusError):
    error_code = "GetDashboardNon200"


class PreferencesUpdateFailed(HTTPStatusError):
    error_code = "UpdatePreferencesNon200"


class RequestBodyError(ExtpError):
    """Raised when the inbound request body cannot be read"""

    error_code = "PostDataError"
    status_code = 500
