"""Provider adapter interface.

One adapter instance per provider lives for the whole process. It owns an
``httpx.AsyncClient`` and the cached upstream credential; nothing else is
shared between jobs.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, NoReturn

import httpx

from invoice_notifier.api.v1.metrics import PROVIDER_LOGINS
from invoice_notifier.domain.errors import (
    AuthenticationError,
    CapabilityNotImplementedError,
    UpstreamRequestError,
)
from invoice_notifier.domain.jobs import AccountBalance, InvoiceList, PaymentResult, RejectionResult
from invoice_notifier.domain.states import InvoiceStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    api_base_url: str
    username: str = ""
    password: str = field(default="", repr=False)
    api_key: str = field(default="", repr=False)
    timeout_seconds: float = 30.0


@dataclass(frozen=True, slots=True)
class Credential:
    """Access token or session id, valid until ``expires_at`` (adapter clock)."""

    token: str = field(repr=False)
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


class ProviderAdapter(ABC):
    provider_id: ClassVar[str]

    def __init__(
        self,
        config: ProviderConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self._clock = clock
        self._credential: Credential | None = None
        # Serializes logins so concurrent jobs do not each re-authenticate
        self._auth_lock = asyncio.Lock()
        self.client = httpx.AsyncClient(
            base_url=config.api_base_url.rstrip("/"),
            timeout=config.timeout_seconds,
            headers=self.default_headers(),
            transport=transport,
        )

    def default_headers(self) -> dict[str, str]:
        return {}

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def authenticate(self) -> str:
        """Return a valid credential, logging in only when the cached one expired."""
        cached = self._credential
        if cached and cached.is_valid(self._clock()):
            return cached.token

        async with self._auth_lock:
            cached = self._credential
            if cached and cached.is_valid(self._clock()):
                return cached.token

            try:
                credential = await self._login()
            except AuthenticationError:
                PROVIDER_LOGINS.labels(provider=self.provider_id, result="failure").inc()
                raise

            self._credential = credential
            PROVIDER_LOGINS.labels(provider=self.provider_id, result="success").inc()
            logger.info(
                "Authenticated with %s, credential cached for %.0fs",
                self.provider_id,
                credential.expires_at - self._clock(),
            )
            return credential.token

    @abstractmethod
    async def _login(self) -> Credential:
        """Perform the upstream login round-trip."""

    def _credential_for(self, token: str, ttl_seconds: float) -> Credential:
        return Credential(token=token, expires_at=self._clock() + ttl_seconds)

    def invalidate_credential(self) -> None:
        self._credential = None

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @abstractmethod
    async def fetch_account_data(self, account_contract: str) -> AccountBalance: ...

    async def fetch_invoices(
        self,
        account_contract: str,
        status: InvoiceStatus | str = InvoiceStatus.UNPAID,
    ) -> InvoiceList:
        status = InvoiceStatus(status)
        if status != InvoiceStatus.ALL:
            return await self._fetch_invoices(account_contract, status)

        tasks = [
            asyncio.ensure_future(self._fetch_invoices(account_contract, InvoiceStatus.UNPAID)),
            asyncio.ensure_future(self._fetch_invoices(account_contract, InvoiceStatus.PAID)),
        ]
        try:
            unpaid, paid = await asyncio.gather(*tasks)
        except Exception:
            # First failure wins; never combine a partial result
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        return InvoiceList(
            invoices=[*unpaid.invoices, *paid.invoices],
            count=unpaid.count + paid.count,
        )

    @abstractmethod
    async def _fetch_invoices(self, account_contract: str, status: InvoiceStatus) -> InvoiceList:
        """Issue the single upstream query for ``unpaid`` or ``paid`` invoices."""

    @abstractmethod
    async def pay_invoice(self, account_contract: str, invoice_number: str, amount: float) -> PaymentResult: ...

    @abstractmethod
    async def reject_invoice(self, account_contract: str, invoice_number: str, reason: str) -> RejectionResult: ...

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _request_json(self, method: str, url: str, *, operation: str, **kwargs: Any) -> Any:
        resp = await self.client.request(method, url, **kwargs)
        logger.debug("%s %s %s -> %s", self.provider_id, method, resp.request.url.path, resp.status_code)

        if resp.status_code == 401:
            # Token revoked or session dropped upstream; the next call logs in again
            self.invalidate_credential()
        if resp.status_code >= 400:
            raise UpstreamRequestError(operation, resp.status_code, resp.reason_phrase)
        try:
            return resp.json()
        except ValueError as exc:
            raise UpstreamRequestError(operation, resp.status_code, "malformed JSON response") from exc

    def _not_implemented(self, capability: str, detail: str) -> NoReturn:
        raise CapabilityNotImplementedError(self.provider_id, capability, detail)

    async def aclose(self) -> None:
        await self.client.aclose()
