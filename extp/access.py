"""
extp - Delegated Access Checks

Decides whether an access key may manage a child account. The key is
checked against the child's parent account in the provision service:

1. Look up the child account to find its parent
2. POST the access key to the parent's keyCheck endpoint

Decisions are cached per (account, key name, key secret). Negative
decisions are cached too, so repeated bad requests do not reach the
provision service. Transport and lookup failures are never cached.
"""
from __future__ import annotations

from urllib.parse import quote

import httpx
import structlog
from pydantic import ValidationError

from .cache import TTLCache
from .exceptions import (
    AccountLookupFailed,
    DecodeError,
    ExtpError,
    KeyCheckFailed,
    NoParentAccount,
    ParentAccountNotFound,
    TransportError,
)
from .metrics import ACCESS_CACHE_HITS, ACCESS_DECISIONS
from .models import AccessKey, AccessResult, AccountResultAck

logger = structlog.get_logger(__name__)


class AccountAccessChecker:
    """
    Memoizing access key checker backed by the provision service.

    Concurrent misses for the same key may both reach the provision
    service; the lookup is idempotent.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        provision_service: str,
        cache: TTLCache,
    ):
        self.http = http_client
        self.provision_service = provision_service.rstrip("/")
        self.cache = cache
        self.logger = logger.bind(component="access")

    @staticmethod
    def cache_key(child_account_id: str, access_key: AccessKey) -> str:
        return child_account_id + access_key.name + access_key.key

    async def authorize(self, child_account_id: str, access_key: AccessKey) -> AccessResult:
        """
        Check whether access_key may manage child_account_id.

        Never raises for remote failures: any error resolves to
        allowed=False with the error attached.
        """
        key = self.cache_key(child_account_id, access_key)

        entry = await self.cache.get(key)
        if entry is not None:
            ACCESS_CACHE_HITS.inc()
            return AccessResult(allowed=bool(entry.value), cached=True)

        try:
            parent_account_id = await self._lookup_parent(child_account_id)
        except ExtpError as e:
            # Lookup failures may succeed on retry
            return self._decision(False, e)

        if not parent_account_id:
            await self.cache.set(key, False)
            return self._decision(False, NoParentAccount(child_account_id))

        try:
            allowed = await self._check_key(parent_account_id, access_key)
        except TransportError as e:
            return self._decision(False, e)
        except ExtpError as e:
            await self.cache.set(key, False)
            return self._decision(False, e)

        await self.cache.set(key, allowed)
        return self._decision(allowed)

    async def _lookup_parent(self, child_account_id: str) -> str:
        url = f"{self.provision_service}/account/{quote(child_account_id, safe='')}"
        self.logger.info("account_lookup", account=child_account_id, url=url)

        try:
            response = await self.http.get(url)
        except httpx.HTTPError as e:
            self.logger.warning("provision_service_request_failure", url=url, error=str(e))
            raise TransportError(f"provision service request failure: {e}") from e

        if response.status_code != 200:
            raise AccountLookupFailed(
                response.status_code,
                response.content,
                message=f"failed to lookup account: {url}",
            )

        try:
            account = AccountResultAck.model_validate_json(response.content)
        except ValidationError as e:
            raise DecodeError(
                f"could not decode account {child_account_id}: {e}",
                body=response.content,
            ) from e

        return account.parent

    async def _check_key(self, parent_account_id: str, access_key: AccessKey) -> bool:
        url = f"{self.provision_service}/keyCheck/{quote(parent_account_id, safe='')}"

        try:
            response = await self.http.post(
                url,
                content=access_key.to_json(),
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            self.logger.warning("provision_service_request_failure", url=url, error=str(e))
            raise TransportError(f"provision service request failure: {e}") from e

        if response.status_code == 200:
            return True

        if response.status_code == 404:
            raise ParentAccountNotFound(parent_account_id)

        raise KeyCheckFailed(
            response.status_code,
            response.content,
            message=f"got code {response.status_code} from {url}",
        )

    def _decision(self, allowed: bool, error: ExtpError | None = None) -> AccessResult:
        reason = error.error_code if error else "ok"
        ACCESS_DECISIONS.labels(allowed=str(allowed).lower(), reason=reason).inc()
        if error:
            self.logger.warning("access_denied", reason=reason, error=error.message)
        return AccessResult(allowed=allowed, error=error)
