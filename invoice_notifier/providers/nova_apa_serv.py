"""Nova Apa Serv (Botosani water utility) adapter.

The site exposes an ASP.NET AJAX service rather than a public API:
authentication yields an ``ASP.NET_SessionId`` cookie, invoice lists come
from two separate endpoints and dates use the ``/Date(ms+hhmm)/`` encoding.
There is no balance endpoint, so the balance is the sum of unpaid
remainders, and there are no payment or dispute endpoints at all.
"""

from __future__ import annotations

import re
import time
from datetime import datetime, timezone
from typing import Any

from invoice_notifier.domain.errors import AuthenticationError
from invoice_notifier.domain.jobs import AccountBalance, Invoice, InvoiceList, PaymentResult, RejectionResult
from invoice_notifier.domain.states import InvoiceStatus
from invoice_notifier.providers.base import Credential, ProviderAdapter, ProviderConfig
from invoice_notifier.providers.dates import parse_aspnet_date
from invoice_notifier.settings import Settings

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:145.0) Gecko/20100101 Firefox/145.0"
# Server sessions last 20 minutes
SESSION_TTL_SECONDS = 15 * 60

_SESSION_COOKIE = re.compile(r"ASP\.NET_SessionId=([^;]+)")

_INVOICE_ENDPOINTS = {
    InvoiceStatus.UNPAID: "/AuthService.svc/GetFacturiNeachitate",
    InvoiceStatus.PAID: "/AuthService.svc/GetFacturiAchitate",
}


class NovaApaServProvider(ProviderAdapter):
    provider_id = "nova-apa-serv"

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "NovaApaServProvider":
        config = ProviderConfig(
            api_base_url=settings.NOVA_APA_SERV_API_BASE_URL,
            username=settings.NOVA_APA_SERV_USERNAME,
            password=settings.NOVA_APA_SERV_PASSWORD.get_secret_value(),
            timeout_seconds=settings.PROVIDER_HTTP_TIMEOUT_SECONDS,
        )
        return cls(config, **kwargs)

    def default_headers(self) -> dict[str, str]:
        base = self.config.api_base_url.rstrip("/")
        return {
            "User-Agent": USER_AGENT,
            "Accept": "application/json, text/javascript, */*; q=0.01",
            "X-Requested-With": "XMLHttpRequest",
            "Referer": f"{base}/pages/contulmeu.html",
        }

    async def _login(self) -> Credential:
        resp = await self.client.post(
            "/AuthService.svc/Authentificate",
            json={
                "username": self.config.username,
                "password": self.config.password,
                "tipClient": 0,
            },
            headers={
                "Content-Type": "application/json; charset=utf-8",
                "Origin": self.config.api_base_url.rstrip("/"),
            },
        )
        if resp.status_code >= 400:
            raise AuthenticationError(resp.reason_phrase, resp.status_code)

        try:
            body = resp.json()
            code = body["Code"]
        except (ValueError, KeyError, TypeError) as exc:
            raise AuthenticationError("malformed login response", resp.status_code) from exc
        if code != 0:
            raise AuthenticationError(str(body.get("Message") or f"code {code}"), resp.status_code)

        set_cookie = "; ".join(resp.headers.get_list("set-cookie"))
        if not set_cookie:
            raise AuthenticationError("no session cookie received", resp.status_code)

        match = _SESSION_COOKIE.search(set_cookie)
        if not match:
            raise AuthenticationError("could not extract session id from cookie", resp.status_code)

        return self._credential_for(match.group(1), SESSION_TTL_SECONDS)

    async def _get_invoices_raw(self, account_contract: str, status: InvoiceStatus, operation: str) -> list[dict[str, Any]]:
        session_id = await self.authenticate()
        payload = await self._request_json(
            "GET",
            _INVOICE_ENDPOINTS[status],
            operation=operation,
            params={
                "tipAbonat": 0,
                "codAbonat": account_contract,
                # Cache buster, as the web client sends it
                "_": int(time.time() * 1000),
            },
            headers={"Cookie": f"ASP.NET_SessionId={session_id}"},
        )
        return list(payload or [])

    async def fetch_account_data(self, account_contract: str) -> AccountBalance:
        unpaid = await self._get_invoices_raw(account_contract, InvoiceStatus.UNPAID, "fetch account data")
        balance = round(sum(float(inv.get("Restplata") or 0) for inv in unpaid), 2)

        return AccountBalance(
            balance=balance,
            date=datetime.now(timezone.utc).isoformat(),
            balance_pay=balance > 0,
        )

    async def _fetch_invoices(self, account_contract: str, status: InvoiceStatus) -> InvoiceList:
        raw = await self._get_invoices_raw(account_contract, status, "fetch invoices")
        return InvoiceList.of([_to_invoice(inv, account_contract) for inv in raw])

    async def pay_invoice(self, account_contract: str, invoice_number: str, amount: float) -> PaymentResult:
        self._not_implemented("pay-invoice", "Nova Apa Serv does not provide a payment API endpoint")

    async def reject_invoice(self, account_contract: str, invoice_number: str, reason: str) -> RejectionResult:
        self._not_implemented("reject-invoice", "Nova Apa Serv does not provide an invoice rejection/dispute API endpoint")


def _to_invoice(inv: dict[str, Any], account_contract: str) -> Invoice:
    remaining = float(inv.get("Restplata") or 0)
    number = str(inv["NrFact"])
    can_download = bool(inv.get("CanDownload"))
    return Invoice(
        fiscal_number=number,
        invoice_number=number,
        maturity_date=parse_aspnet_date(inv["Data"]),
        emission_date=parse_aspnet_date(inv["DataFact"]),
        print_date=inv.get("DataAsString"),
        issued_value=float(inv.get("Total_factura") or 0),
        balance_value=remaining,
        state="unpaid" if remaining > 0 else "paid",
        type="water",
        sector="utilities",
        cb=account_contract,
        company_code="NOVA_APA_SERV",
        electronic=True,
        account_contract=account_contract,
        has_details=True,
        has_pdf=can_download,
        is_downloadable=can_download,
        can_pay=remaining > 0,
        invoice_type_code="WATER",
        digital_invoice=True,
    )
