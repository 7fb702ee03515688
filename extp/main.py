"""
extp - External Component Provisioning API

Provisions Grafana resources for tenant accounts:
- /grafana/createOrg/{orgName}: organization + default user
- /grafana/enablePlugin/{orgName}/{plugin}: plugin settings
- /grafana/createDatasource/{orgName}: datasource
- /grafana/setHomeDashboard/{orgName}/{uid}: home dashboard

Every /grafana route checks the basic auth access key against the parent
of the orgName account before doing anything.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import httpx
import redis.asyncio as redis
import structlog
import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from prometheus_client import make_asgi_app
from redis.exceptions import RedisError
from starlette.requests import ClientDisconnect

from . import ack
from .access import AccountAccessChecker
from .cache import MemoryTTLCache, RedisTTLCache, TTLCache
from .config import Settings, settings as default_settings
from .exceptions import AccessDenied, DecodeError, ExtpError, HTTPStatusError, RequestBodyError
from .grafana import GrafanaClient
from .logging_config import configure_logging
from .models import AccessKey

logger = structlog.get_logger(__name__)

basic_auth = HTTPBasic(auto_error=False)


# =============================================================================
# Access check
# =============================================================================

async def check_access(
    request: Request,
    org_name: str,
    credentials: Optional[HTTPBasicCredentials] = Depends(basic_auth),
) -> None:
    """Verify the basic auth access key may manage the org_name account."""
    state = request.app.state
    logger.info("org_account_check", account=org_name)

    if credentials is None:
        if state.settings.REQUIRE_ACCESS_KEY:
            raise AccessDenied("Missing API Key")
        return

    access_key = AccessKey(name=credentials.username, key=credentials.password)
    result = await state.access_checker.authorize(org_name, access_key)

    if result.error is not None:
        raise AccessDenied(result.error.message)

    if not result.allowed:
        raise AccessDenied("Invalid API Key")


async def read_body(request: Request) -> bytes:
    try:
        return await request.body()
    except ClientDisconnect as e:
        raise RequestBodyError("There was a problem with the posted data") from e


def get_grafana(request: Request) -> GrafanaClient:
    return request.app.state.grafana


# =============================================================================
# Routes
# =============================================================================

router = APIRouter(prefix="/grafana", dependencies=[Depends(check_access)])


@router.get("/createOrg/{org_name}")
async def create_org(org_name: str, request: Request, grafana: GrafanaClient = Depends(get_grafana)):
    """Create a Grafana organization and its default user."""
    result = await grafana.create_org(org_name)
    return ack.send(result, payload_type="GraCreateResult", location=request.url.path)


@router.post("/enablePlugin/{org_name}/{plugin}")
async def enable_plugin(
    org_name: str,
    plugin: str,
    request: Request,
    grafana: GrafanaClient = Depends(get_grafana),
):
    """Enable a plugin for an organization, posting the request body as its settings."""
    settings = await read_body(request)
    body = await grafana.enable_plugin(org_name, plugin, settings)
    return ack.send(
        body.decode("utf-8", errors="replace"),
        payload_type="PluginReturn",
        location=request.url.path,
    )


@router.post("/createDatasource/{org_name}")
async def create_datasource(org_name: str, request: Request, grafana: GrafanaClient = Depends(get_grafana)):
    """Create a datasource in an organization from the posted Grafana datasource JSON."""
    datasource = await read_body(request)
    body = await grafana.create_datasource(org_name, datasource)
    return ack.send(
        body.decode("utf-8", errors="replace"),
        payload_type="CreateDatasourceReturn",
        location=request.url.path,
    )


@router.get("/setHomeDashboard/{org_name}/{uid}")
async def set_home_dashboard(
    org_name: str,
    uid: str,
    request: Request,
    grafana: GrafanaClient = Depends(get_grafana),
):
    """Point the organization's home dashboard at the dashboard with the given uid."""
    result = await grafana.set_home_dashboard(org_name, uid)
    return ack.send(result, payload_type="GenericResponse", location=request.url.path)


# =============================================================================
# Error handling
# =============================================================================

async def extp_error_handler(request: Request, exc: ExtpError) -> JSONResponse:
    location = request.url.path

    if isinstance(exc, AccessDenied):
        return ack.error(
            401,
            exc.error_code,
            exc.message,
            payload="APIKeyCheckError",
            location=location,
            headers={"WWW-Authenticate": "Basic"},
        )

    logger.warning(
        "request_failed",
        path=location,
        error_code=exc.error_code,
        status_code=exc.status_code,
        step=exc.step,
        error=exc.message,
    )

    if isinstance(exc, HTTPStatusError):
        # Upstream reply is passed through as the message
        return ack.error(exc.status_code, exc.error_code, exc.body_text or exc.message, location=location)

    if isinstance(exc, DecodeError):
        return ack.error(exc.status_code, exc.error_code, exc.message, payload=exc.body_text, location=location)

    return ack.error(exc.status_code, exc.error_code, exc.message, location=location)


# =============================================================================
# Application
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    cache: Optional[TTLCache] = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        settings: Settings to use (defaults to environment settings)
        http_client: Shared outbound client; created in lifespan if omitted
        cache: Access decision store; Redis if REDIS_URL is set, else in-process
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log = logger.bind(service=settings.SERVICE_NAME)
        log.info(
            "extp_starting",
            grafana=settings.GF_LOCATION,
            provision_service=settings.PROVISION_SERVICE,
            require_access_key=settings.REQUIRE_ACCESS_KEY,
        )

        owns_client = http_client is None
        client = http_client or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT)

        redis_client = None
        access_cache = cache
        if access_cache is None:
            if settings.REDIS_URL:
                redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
                try:
                    await redis_client.ping()
                    log.info("redis_connected")
                except RedisError as e:
                    log.error("redis_connect_failed", error=str(e))
                    raise
                access_cache = RedisTTLCache(
                    redis_client,
                    ttl=settings.ACCESS_CACHE_TTL,
                    purge_after=settings.ACCESS_CACHE_PURGE,
                )
            else:
                access_cache = MemoryTTLCache(
                    ttl=settings.ACCESS_CACHE_TTL,
                    purge_after=settings.ACCESS_CACHE_PURGE,
                )

        app.state.redis = redis_client
        app.state.grafana = GrafanaClient(
            client,
            location=settings.GF_LOCATION,
            username=settings.GF_ADMIN_USER,
            password=settings.GF_ADMIN_PASSWORD,
        )
        app.state.access_checker = AccountAccessChecker(
            client,
            provision_service=settings.PROVISION_SERVICE,
            cache=access_cache,
        )

        yield

        log.info("extp_stopping")
        if owns_client:
            await client.aclose()
        if redis_client is not None:
            await redis_client.close()

    app = FastAPI(
        title="External Component Provisioning",
        description="Provisions Grafana organizations, users, plugins and datasources for tenant accounts",
        version=settings.VERSION,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_exception_handler(ExtpError, extp_error_handler)
    app.include_router(router)
    app.mount("/metrics", make_asgi_app())

    @app.get("/welcome")
    async def welcome(request: Request):
        return ack.send("Welcome", payload_type="Message", location=request.url.path)

    @app.get("/health")
    async def health_check():
        """Basic health check."""
        return {"status": "healthy", "service": settings.SERVICE_NAME}

    @app.get("/ready")
    async def ready(request: Request):
        """Readiness probe; checks Redis when it backs the access cache."""
        redis_client = getattr(request.app.state, "redis", None)
        if redis_client is None:
            return {"status": "ready", "cache": "memory"}
        try:
            await redis_client.ping()
        except RedisError:
            return JSONResponse(
                status_code=503,
                content={"status": "not_ready", "redis": "disconnected"},
            )
        return {"status": "ready", "cache": "redis"}

    return app


configure_logging(default_settings.LOG_LEVEL)
app = create_app()


def run() -> None:
    uvicorn.run(
        "extp.main:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        log_level=default_settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
