"""
extp - External Component Provisioning

Provisions Grafana organizations, users, plugins, datasources and home
dashboards for tenant accounts, guarded by delegated access key checks.
"""

from .access import AccountAccessChecker
from .cache import CacheEntry, MemoryTTLCache, RedisTTLCache
from .exceptions import (
    AccessDenied,
    DecodeError,
    ExtpError,
    HTTPStatusError,
    NoParentAccount,
    ParentAccountNotFound,
    TransportError,
)
from .grafana import GrafanaClient
from .models import AccessKey, AccessResult, ProvisioningResult
from .passwords import generate_password

__version__ = "1.0.0"
__all__ = [
    "AccountAccessChecker",
    "CacheEntry",
    "MemoryTTLCache",
    "RedisTTLCache",
    "AccessDenied",
    "DecodeError",
    "ExtpError",
    "HTTPStatusError",
    "NoParentAccount",
    "ParentAccountNotFound",
    "TransportError",
    "GrafanaClient",
    "AccessKey",
    "AccessResult",
    "ProvisioningResult",
    "generate_password",
]
