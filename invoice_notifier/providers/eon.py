"""E.ON Romania (api2.eon.ro) adapter.

Bearer-token API behind an Azure APIM subscription key. Tokens are cached
for 90% of the lifetime the login response declares.
"""

from __future__ import annotations

from typing import Any

from invoice_notifier.domain.errors import AuthenticationError
from invoice_notifier.domain.jobs import AccountBalance, Invoice, InvoiceList, PaymentResult, RejectionResult
from invoice_notifier.domain.states import InvoiceStatus
from invoice_notifier.providers.base import Credential, ProviderAdapter, ProviderConfig
from invoice_notifier.providers.dates import parse_iso_instant
from invoice_notifier.settings import Settings

USER_AGENT = "Mozilla/5.0 (compatible; InvoiceNotifier/1.0)"
TOKEN_TTL_FACTOR = 0.9


class EONProvider(ProviderAdapter):
    provider_id = "eon"

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "EONProvider":
        config = ProviderConfig(
            api_base_url=settings.EON_API_BASE_URL,
            api_key=settings.EON_API_KEY.get_secret_value(),
            username=settings.EON_USERNAME,
            password=settings.EON_PASSWORD.get_secret_value(),
            timeout_seconds=settings.PROVIDER_HTTP_TIMEOUT_SECONDS,
        )
        return cls(config, **kwargs)

    def default_headers(self) -> dict[str, str]:
        return {
            "Ocp-Apim-Subscription-Key": self.config.api_key,
            "User-Agent": USER_AGENT,
        }

    async def _login(self) -> Credential:
        resp = await self.client.post(
            "/users/v1/userauth/login",
            json={
                "username": self.config.username,
                "password": self.config.password,
                "rememberMe": False,
            },
        )
        if resp.status_code >= 400:
            raise AuthenticationError(resp.reason_phrase, resp.status_code)

        try:
            payload = resp.json()
            token = payload["accessToken"]
            expires_in = float(payload["expiresIn"])
        except (ValueError, KeyError, TypeError) as exc:
            raise AuthenticationError("malformed login response", resp.status_code) from exc
        if not token:
            raise AuthenticationError("login response carried no access token", resp.status_code)

        return self._credential_for(token, expires_in * TOKEN_TTL_FACTOR)

    async def _auth_headers(self) -> dict[str, str]:
        token = await self.authenticate()
        return {"Authorization": f"Bearer {token}"}

    async def fetch_account_data(self, account_contract: str) -> AccountBalance:
        payload = await self._request_json(
            "GET",
            "/invoices/v1/invoices/invoice-balance",
            operation="fetch account data",
            params={"accountContract": account_contract},
            headers=await self._auth_headers(),
        )
        return AccountBalance.model_validate(payload)

    async def _fetch_invoices(self, account_contract: str, status: InvoiceStatus) -> InvoiceList:
        payload = await self._request_json(
            "GET",
            "/invoices/v1/invoices/list",
            operation="fetch invoices",
            params={"accountContract": account_contract, "status": str(status)},
            headers=await self._auth_headers(),
        )
        return InvoiceList.of([_to_invoice(raw, account_contract) for raw in payload or []])

    async def pay_invoice(self, account_contract: str, invoice_number: str, amount: float) -> PaymentResult:
        self._not_implemented("pay-invoice", "the E.ON API exposes no payment endpoint")

    async def reject_invoice(self, account_contract: str, invoice_number: str, reason: str) -> RejectionResult:
        self._not_implemented("reject-invoice", "the E.ON API exposes no invoice rejection endpoint")


def _to_invoice(raw: dict[str, Any], account_contract: str) -> Invoice:
    balance_value = float(raw.get("balanceValue") or 0)
    number = str(raw.get("invoiceNumber") or raw.get("fiscalNumber") or "")
    return Invoice(
        fiscal_number=str(raw.get("fiscalNumber") or number),
        invoice_number=number,
        maturity_date=parse_iso_instant(raw.get("maturityDate")),
        emission_date=parse_iso_instant(raw.get("emissionDate")),
        disconnection_date=parse_iso_instant(raw.get("disconnectionDate")),
        print_date=raw.get("printDate"),
        archive_date=parse_iso_instant(raw.get("archiveDate")),
        issued_value=float(raw.get("issuedValue") or 0),
        balance_value=balance_value,
        state="unpaid" if balance_value > 0 else "paid",
        type=raw.get("type"),
        sector=raw.get("sector"),
        cb=raw.get("cb"),
        company_code=raw.get("companyCode"),
        electronic=bool(raw.get("electronic")),
        account_contract=str(raw.get("accountContract") or account_contract),
        has_details=bool(raw.get("hasDetails")),
        has_pdf=bool(raw.get("hasPdf")),
        is_downloadable=bool(raw.get("isDownloadable")),
        can_pay=bool(raw.get("canPay", balance_value > 0)),
        can_activate=bool(raw.get("canActivate")),
        invoice_type_code=raw.get("invoiceTypeCode"),
        payment_instalment=bool(raw.get("paymentInstalment")),
        refund=bool(raw.get("refund")),
        refund_in_process=bool(raw.get("refundInProcess")),
        digital_invoice=bool(raw.get("digitalInvoice")),
        refund_request_created_at=parse_iso_instant(raw.get("refundRequestCreatedAt")),
        storno=raw.get("storno"),
    )
