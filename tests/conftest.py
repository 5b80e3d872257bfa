import json

import httpx
import pytest

from invoice_notifier.db.session import create_engine, create_session_factory, create_tables
from invoice_notifier.providers.eon import EONProvider
from invoice_notifier.providers.nova_apa_serv import NovaApaServProvider
from invoice_notifier.providers.registry import ProviderRegistry
from invoice_notifier.services.queue import QueueEngine
from invoice_notifier.settings import Settings

EON_BASE_URL = "https://eon.test"
NOVA_BASE_URL = "https://nova.test"

EON_BALANCE = {
    "balance": 317.79,
    "refund": False,
    "date": "2025-11-12",
    "refundInProcess": False,
    "refundRequestCreatedAt": None,
    "hasGuarantee": False,
    "hasUnpaidGuarantee": False,
    "balancePay": True,
    "refundDocumentsRequired": False,
    "isAssociation": False,
}

EON_INVOICES = {
    "unpaid": [
        {
            "fiscalNumber": "EON-F-1",
            "invoiceNumber": "011895623139",
            "emissionDate": "2025-10-15T00:00:00",
            "maturityDate": "2025-11-14T00:00:00+02:00",
            "issuedValue": 317.79,
            "balanceValue": 317.79,
            "accountContract": "0022",
            "hasPdf": True,
            "canPay": True,
        },
    ],
    "paid": [
        {
            "fiscalNumber": "EON-F-0",
            "invoiceNumber": "011795000001",
            "emissionDate": "2025-09-15",
            "maturityDate": "2025-10-14",
            "issuedValue": 250.0,
            "balanceValue": 0,
            "accountContract": "0022",
        },
        {
            "fiscalNumber": "EON-F-00",
            "invoiceNumber": "011695000002",
            "emissionDate": "2025-08-15",
            "maturityDate": "2025-09-14",
            "issuedValue": 199.5,
            "balanceValue": 0,
            "accountContract": "0022",
        },
    ],
}

NOVA_UNPAID = [
    {
        "NrFact": "1001",
        "Data": "/Date(1762898400000+0200)/",
        "DataFact": "/Date(1760306400000+0200)/",
        "DataAsString": "12.11.2025",
        "Total_factura": 85.4,
        "Restplata": 85.4,
        "CanDownload": True,
    },
    {
        "NrFact": "1002",
        "Data": "/Date(1762898400000+0200)/",
        "DataFact": "/Date(1760306400000+0200)/",
        "DataAsString": "12.11.2025",
        "Total_factura": 40.0,
        "Restplata": 20.1,
        "CanDownload": False,
    },
]

NOVA_PAID = [
    {
        "NrFact": "0990",
        "Data": "/Date(1760306400000+0300)/",
        "DataFact": "/Date(1757714400000+0300)/",
        "DataAsString": "12.10.2025",
        "Total_factura": 77.0,
        "Restplata": 0,
        "CanDownload": True,
    },
]


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class EonUpstream:
    """In-memory stand-in for the E.ON API, counting logins."""

    def __init__(self, expires_in: int = 3600, fail_status: str | None = None, login_status: int = 200):
        self.expires_in = expires_in
        self.fail_status = fail_status
        self.login_status = login_status
        self.login_calls = 0
        self.revoked: set[str] = set()
        self.requests: list[httpx.Request] = []

    def revoke_current_token(self) -> None:
        self.revoked.add(f"token-{self.login_calls}")

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/users/v1/userauth/login":
            self.login_calls += 1
            if self.login_status != 200:
                return httpx.Response(self.login_status, json={"message": "Invalid credentials"})
            return httpx.Response(200, json={
                "accessToken": f"token-{self.login_calls}",
                "tokenType": "Bearer",
                "expiresIn": self.expires_in,
            })

        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        if token != f"token-{self.login_calls}" or token in self.revoked:
            return httpx.Response(401, json={"message": "Unauthorized"})

        if path == "/invoices/v1/invoices/invoice-balance":
            return httpx.Response(200, json=EON_BALANCE)

        if path == "/invoices/v1/invoices/list":
            status = request.url.params["status"]
            if status == self.fail_status:
                return httpx.Response(503, json={"message": "unavailable"})
            return httpx.Response(200, json=EON_INVOICES[status])

        return httpx.Response(404)


class NovaUpstream:
    """In-memory stand-in for the Nova Apa Serv ASP.NET service."""

    SESSION_ID = "nova-session-42"

    def __init__(self, code: int = 0, send_cookie: bool = True):
        self.code = code
        self.send_cookie = send_cookie
        self.login_calls = 0
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/AuthService.svc/Authentificate":
            self.login_calls += 1
            body = json.loads(request.content)
            assert body["tipClient"] == 0
            headers = []
            if self.send_cookie:
                headers.append(("set-cookie", f"ASP.NET_SessionId={self.SESSION_ID}; path=/; HttpOnly"))
            message = "OK" if self.code == 0 else "Utilizator sau parola gresita"
            return httpx.Response(200, json={"Code": self.code, "Message": message}, headers=headers)

        if f"ASP.NET_SessionId={self.SESSION_ID}" not in request.headers.get("cookie", ""):
            return httpx.Response(401)

        if path == "/AuthService.svc/GetFacturiNeachitate":
            return httpx.Response(200, json=NOVA_UNPAID)
        if path == "/AuthService.svc/GetFacturiAchitate":
            return httpx.Response(200, json=NOVA_PAID)
        return httpx.Response(404)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def providers_file(tmp_path):
    logos = tmp_path / "logos"
    logos.mkdir()
    (logos / "eon.png").write_bytes(b"\x89PNG\r\n\x1a\nfake")
    path = tmp_path / "providers.json"
    path.write_text(json.dumps({
        "providers": [
            {
                "id": "eon",
                "name": "E.ON",
                "description": "Electricity and gas",
                "abilities": ["fetch-account-data", "fetch-invoice"],
                "logoPath": "logos/eon.png",
            },
            {
                "id": "Nova-Apa-Serv",
                "name": "Nova Apa Serv",
                "description": "Water",
                "abilities": ["fetch-account-data", "fetch-invoice"],
                "logoPath": "logos/missing.svg",
            },
        ]
    }))
    return path


@pytest.fixture
def settings(tmp_path, providers_file) -> Settings:
    return Settings(
        _env_file=None,
        SQLALCHEMY_DATABASE_URI=f"sqlite+aiosqlite:///{tmp_path / 'queue.db'}",
        API_TOKEN="test-token",
        ADMIN_USERNAME="admin",
        ADMIN_PASSWORD="s3cret",
        PROVIDERS_CONFIG_PATH=str(providers_file),
        EON_API_BASE_URL=EON_BASE_URL,
        EON_API_KEY="subscription-key",
        EON_USERNAME="user@example.com",
        EON_PASSWORD="eon-password",
        NOVA_APA_SERV_API_BASE_URL=NOVA_BASE_URL,
        NOVA_APA_SERV_USERNAME="nova-user",
        NOVA_APA_SERV_PASSWORD="nova-password",
    )


@pytest.fixture
async def engine(settings):
    engine = create_engine(settings.SQLALCHEMY_DATABASE_URI)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def queue(engine) -> QueueEngine:
    return QueueEngine(create_session_factory(engine), name="TestQueue")


@pytest.fixture
def eon_upstream() -> EonUpstream:
    return EonUpstream()


@pytest.fixture
def nova_upstream() -> NovaUpstream:
    return NovaUpstream()


@pytest.fixture
async def registry(settings, eon_upstream, nova_upstream):
    registry = ProviderRegistry(
        settings,
        factories={
            "eon": lambda s: EONProvider.from_settings(s, transport=httpx.MockTransport(eon_upstream)),
            "nova-apa-serv": lambda s: NovaApaServProvider.from_settings(s, transport=httpx.MockTransport(nova_upstream)),
        },
    )
    yield registry
    await registry.aclose()
