"""
extp - Grafana Client

Sends admin commands to Grafana and composes them into the provisioning
operations exposed by the API:

- create_org: organization + default Viewer user
- enable_plugin: plugin settings for an organization
- create_datasource: datasource under an organization
- set_home_dashboard: organization home dashboard preference

None of the multi-step operations are transactional. A failing step
leaves everything created by earlier steps in place.
"""
from __future__ import annotations

import json
import time
from typing import Optional, Type, TypeVar, Union
from urllib.parse import quote

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from .exceptions import (
    CreateDatasourceFailed,
    DashboardLookupFailed,
    DecodeError,
    EnablePluginFailed,
    ExtpError,
    HTTPStatusError,
    OrgCreateFailed,
    OrgLookupFailed,
    PreferencesUpdateFailed,
    TransportError,
    UserBindFailed,
    UserCreateFailed,
    UserUnbindFailed,
)
from .metrics import GRAFANA_COMMAND_DURATION, GRAFANA_COMMANDS, PROVISIONING_FAILURES
from .models import (
    CreateOrgResponse,
    CreateUserResponse,
    Dashboard,
    GenericResponse,
    GrafanaOrg,
    GrafanaUser,
    OrgPreferences,
    OrgRole,
    OrgUserRole,
    ProvisioningResult,
    WireModel,
)
from .passwords import generate_password

logger = structlog.get_logger(__name__)

ORG_ID_HEADER = "X-Grafana-Org-Id"

# Every new global user is added to this organization by Grafana
DEFAULT_ORG_ID = 1

ModelT = TypeVar("ModelT", bound=BaseModel)


class GrafanaClient:
    """Grafana admin API client authenticated with basic auth."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        location: str,
        username: str,
        password: str,
    ):
        self.http = http_client
        self.location = location.rstrip("/")
        self.username = username
        self.password = password
        self.logger = logger.bind(component="grafana")

    # =========================================================================
    # Command executor
    # =========================================================================

    async def cmd(
        self,
        verb: str,
        path: str,
        org_id: int = 0,
        payload: Optional[bytes] = None,
    ) -> tuple[int, bytes]:
        """
        Execute a single Grafana API call.

        Args:
            verb: HTTP method
            path: API path, appended to the Grafana location
            org_id: Organization scope; sent as X-Grafana-Org-Id when > 0
            payload: Raw JSON request body

        Returns:
            (status_code, body). Non-2xx statuses are returned, not raised.

        Raises:
            TransportError: If Grafana could not be reached
        """
        self.logger.info(
            "grafana_command",
            verb=verb,
            path=path,
            org_id=org_id,
            payload_bytes=len(payload) if payload else 0,
        )

        headers = {"Content-Type": "application/json"}
        if org_id > 0:
            headers[ORG_ID_HEADER] = str(org_id)

        start = time.perf_counter()
        try:
            response = await self.http.request(
                verb,
                self.location + path,
                content=payload,
                headers=headers,
                auth=(self.username, self.password),
            )
        except httpx.HTTPError as e:
            GRAFANA_COMMANDS.labels(verb=verb, status="error").inc()
            self.logger.warning("grafana_unreachable", verb=verb, path=path, error=str(e))
            raise TransportError(f"grafana request failed: {e}", error_code="GrafanaClientError") from e
        finally:
            GRAFANA_COMMAND_DURATION.labels(verb=verb).observe(time.perf_counter() - start)

        GRAFANA_COMMANDS.labels(verb=verb, status=str(response.status_code)).inc()
        return response.status_code, response.content

    async def cmd_obj(
        self,
        verb: str,
        path: str,
        org_id: int = 0,
        payload: Union[WireModel, dict, None] = None,
    ) -> tuple[int, bytes]:
        """Serialize payload to JSON and execute it with cmd()."""
        if isinstance(payload, WireModel):
            body = payload.to_json()
        else:
            body = json.dumps(payload).encode()
        return await self.cmd(verb, path, org_id, body)

    # =========================================================================
    # Lookups
    # =========================================================================

    async def get_org_by_name(self, org_name: str) -> GrafanaOrg:
        """Resolve an organization by name. The reply must carry the org id."""
        code, body = await self.cmd("GET", f"/api/orgs/name/{quote(org_name, safe='')}")
        self._expect_ok(code, body, OrgLookupFailed)
        org = self._decode(body, GrafanaOrg)
        if org.id is None:
            raise DecodeError(f"organization {org_name} has no id", body=body)
        return org

    # =========================================================================
    # Provisioning workflow
    # =========================================================================

    async def create_org(self, org_name: str) -> ProvisioningResult:
        """
        Create an organization and its default user.

        Steps, in order:
        1. Create the organization
        2. Create a global user named after the organization
        3. Remove the user from the default organization (id 1)
        4. Add the user to the new organization as Viewer

        Raises:
            OrgCreateFailed, UserCreateFailed, UserUnbindFailed, UserBindFailed:
                when the step's call returns a non-200 status
            TransportError, DecodeError: with .step set to the failing step
        """
        log = self.logger.bind(org_name=org_name)
        step = "create_org"
        try:
            # https://grafana.com/docs/http_api/org/#create-organization
            code, body = await self.cmd_obj("POST", "/api/orgs", payload=GrafanaOrg(name=org_name))
            self._expect_ok(code, body, OrgCreateFailed)
            org = self._decode(body, CreateOrgResponse)
            log.info("org_created", org_id=org.org_id)

            # https://grafana.com/docs/http_api/admin/#global-users
            step = "create_user"
            user = GrafanaUser(name=org_name, login=org_name, password=generate_password())
            code, body = await self.cmd_obj("POST", "/api/admin/users", payload=user)
            self._expect_ok(code, body, UserCreateFailed)
            created_user = self._decode(body, CreateUserResponse)
            log.info("user_created", user_id=created_user.id)

            role = OrgUserRole(login_or_email=org_name, role=OrgRole.VIEWER)

            # https://grafana.com/docs/http_api/org/#delete-user-in-organization
            step = "unbind_user"
            code, body = await self.cmd_obj(
                "DELETE",
                f"/api/orgs/{DEFAULT_ORG_ID}/users/{created_user.id}",
                payload=role,
            )
            self._expect_ok(code, body, UserUnbindFailed)

            # https://grafana.com/docs/http_api/org/#add-user-in-organization
            step = "bind_user"
            code, body = await self.cmd_obj("POST", f"/api/orgs/{org.org_id}/users", payload=role)
            self._expect_ok(code, body, UserBindFailed)
        except ExtpError as e:
            e.step = step
            PROVISIONING_FAILURES.labels(step=step).inc()
            log.warning(
                "org_provisioning_failed",
                step=step,
                error_code=e.error_code,
                status_code=e.status_code,
            )
            raise

        log.info("org_provisioned", org_id=org.org_id, user_id=created_user.id)
        return ProvisioningResult(org=org, user=user)

    # =========================================================================
    # Single step operations
    # =========================================================================

    async def enable_plugin(self, org_name: str, plugin: str, settings: bytes) -> bytes:
        """Post plugin settings under the organization's scope. Returns Grafana's raw reply."""
        org = await self.get_org_by_name(org_name)

        code, body = await self.cmd("POST", f"/api/plugins/{quote(plugin, safe='')}/settings", org.id, settings)
        self._expect_ok(code, body, EnablePluginFailed)

        self.logger.info("plugin_enabled", org_name=org_name, org_id=org.id, plugin=plugin)
        return body

    async def create_datasource(self, org_name: str, datasource: bytes) -> bytes:
        """Create a datasource under the organization's scope. Returns Grafana's raw reply."""
        org = await self.get_org_by_name(org_name)

        code, body = await self.cmd("POST", "/api/datasources", org.id, datasource)
        self._expect_ok(code, body, CreateDatasourceFailed)

        self.logger.info("datasource_created", org_name=org_name, org_id=org.id)
        return body

    async def set_home_dashboard(self, org_name: str, uid: str) -> GenericResponse:
        """Set the organization's home dashboard to the dashboard with the given uid."""
        org = await self.get_org_by_name(org_name)
        org_id = org.id

        code, body = await self.cmd("GET", f"/api/dashboards/uid/{quote(uid, safe='')}", org_id)
        self._expect_ok(code, body, DashboardLookupFailed)
        dashboard = self._decode(body, Dashboard)

        prefs = OrgPreferences(
            theme="",
            home_dashboard_id=dashboard.dashboard.id,
            timezone="browser",
        )
        code, body = await self.cmd_obj("PUT", "/api/org/preferences", org_id, prefs)
        self._expect_ok(code, body, PreferencesUpdateFailed)

        self.logger.info(
            "home_dashboard_set",
            org_name=org_name,
            org_id=org_id,
            dashboard_id=dashboard.dashboard.id,
        )
        return self._decode(body, GenericResponse)

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _expect_ok(code: int, body: bytes, error: Type[HTTPStatusError]) -> None:
        if code != 200:
            raise error(code, body)

    @staticmethod
    def _decode(body: bytes, model: Type[ModelT]) -> ModelT:
        try:
            return model.model_validate_json(body)
        except ValidationError as e:
            raise DecodeError(f"could not decode {model.__name__}: {e}", body=body) from e
