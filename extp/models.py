"""
extp - Data Models

Pydantic models for the Grafana and provision service wire formats, plus
dataclasses for internal results.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from .exceptions import ExtpError


class WireModel(BaseModel):
    """Base for models exchanged as camelCase JSON."""
    model_config = ConfigDict(populate_by_name=True)

    def to_json(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode()


# =============================================================================
# Provision service
# =============================================================================

class AccessKey(WireModel):
    """Name/secret pair presented through basic auth."""
    name: str
    key: str


class AccountSource(WireModel):
    id: str = ""
    description: str = ""
    display_name: str = ""
    parent: str = ""
    active: bool = False


class AccountPayload(WireModel):
    source: AccountSource = Field(default_factory=AccountSource)


class AccountResultAck(WireModel):
    """Account lookup envelope returned by the provision service."""
    payload: AccountPayload = Field(default_factory=AccountPayload)

    @property
    def parent(self) -> str:
        return self.payload.source.parent or ""


@dataclass
class AccessResult:
    """Result of an access key check."""
    allowed: bool
    error: Optional["ExtpError"] = None
    cached: bool = False


# =============================================================================
# Grafana
# =============================================================================

class OrgRole(str, Enum):
    ADMIN = "Admin"
    EDITOR = "Editor"
    VIEWER = "Viewer"


class OrgAddress(WireModel):
    address1: str = ""
    address2: str = ""
    city: str = ""
    zip_code: str = Field(default="", alias="zipCode")
    state: str = ""
    country: str = ""


class GrafanaOrg(WireModel):
    id: Optional[int] = None
    name: str
    address: OrgAddress = Field(default_factory=OrgAddress)

    def to_json(self) -> bytes:
        return self.model_dump_json(by_alias=True, exclude_none=True).encode()


class GrafanaUser(WireModel):
    name: str = ""
    email: str = ""
    login: str = ""
    password: str = ""


class OrgUserRole(WireModel):
    login_or_email: str = Field(alias="loginOrEmail")
    role: OrgRole = OrgRole.VIEWER


class CreateOrgResponse(WireModel):
    message: str = ""
    org_id: int = Field(default=0, alias="orgId")


class CreateUserResponse(WireModel):
    id: int = 0
    message: str = ""


class GenericResponse(WireModel):
    message: str = ""


class OrgPreferences(WireModel):
    theme: str = ""
    home_dashboard_id: int = Field(default=0, alias="homeDashboardId")
    timezone: str = "browser"


class DashboardDetails(WireModel):
    id: int = 0
    uid: str = ""
    title: str = ""
    tags: list[str] = Field(default_factory=list)
    timezone: str = ""
    schema_version: int = Field(default=0, alias="schemaVersion")
    version: int = 0


class DashboardMeta(WireModel):
    is_starred: bool = Field(default=False, alias="isStarred")
    url: str = ""
    slug: str = ""


class Dashboard(WireModel):
    dashboard: DashboardDetails = Field(default_factory=DashboardDetails)
    meta: DashboardMeta = Field(default_factory=DashboardMeta)


class ProvisioningResult(WireModel):
    """Organization and default user created by the provisioning workflow."""
    org: CreateOrgResponse
    user: GrafanaUser


# =============================================================================
# Responses
# =============================================================================

class Ack(BaseModel):
    """Response envelope for every API reply."""
    ack_uuid: str = Field(default_factory=lambda: str(uuid.uuid4()))
    date_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    success: bool = True
    server_code: int = 200
    location: str = ""
    payload_type: str = ""
    payload: Any = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
