"""Typed job payloads and results.

Each job kind is one variant of the ``JobData`` union, discriminated by the
``type`` tag and carrying exactly the fields that kind needs. Wire and storage
format is camelCase (``accountContract``, ``invoiceNumber``).
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from invoice_notifier.domain.errors import JobValidationError
from invoice_notifier.domain.states import InvoiceStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Job payloads
# ---------------------------------------------------------------------------

class BaseJobData(CamelModel):
    provider: str = Field(min_length=1)
    account_contract: str = Field(min_length=1)

    model_config = ConfigDict(frozen=True, extra="ignore")


class FetchAccountDataJob(BaseJobData):
    type: Literal["fetch-account-data"] = "fetch-account-data"


class FetchInvoiceJob(BaseJobData):
    type: Literal["fetch-invoice"] = "fetch-invoice"
    status: InvoiceStatus = InvoiceStatus.UNPAID


class PayInvoiceJob(BaseJobData):
    type: Literal["pay-invoice"] = "pay-invoice"
    invoice_number: str = Field(min_length=1)
    amount: float = Field(gt=0, allow_inf_nan=False)


class RejectInvoiceJob(BaseJobData):
    type: Literal["reject-invoice"] = "reject-invoice"
    invoice_number: str = Field(min_length=1)
    reason: str = Field(min_length=1)


JobData = Annotated[
    Union[FetchAccountDataJob, FetchInvoiceJob, PayInvoiceJob, RejectInvoiceJob],
    Field(discriminator="type"),
]

_job_data_adapter: TypeAdapter[JobData] = TypeAdapter(JobData)


def parse_job_data(raw: Mapping[str, Any]) -> JobData:
    """Validate a raw enqueue request into its job variant.

    Raises:
        JobValidationError: not an object, unknown ``type`` or missing/invalid
            kind-specific fields.
    """
    if not isinstance(raw, Mapping):
        raise JobValidationError(
            "Invalid job request: body must be a JSON object",
            [{"loc": [], "msg": f"expected an object, got {type(raw).__name__}"}],
        )
    try:
        return _job_data_adapter.validate_python(dict(raw))
    except ValidationError as exc:
        errors = [
            {"loc": [str(part) for part in err["loc"]], "msg": err["msg"]}
            for err in exc.errors()
        ]
        kind = raw.get("type")
        summary = "; ".join(f"{'.'.join(e['loc'])}: {e['msg']}" for e in errors)
        raise JobValidationError(f"Invalid {kind or 'job'} request: {summary}", errors) from exc


# ---------------------------------------------------------------------------
# Job results
# ---------------------------------------------------------------------------

class AccountBalance(CamelModel):
    balance: float
    refund: bool = False
    date: str
    refund_in_process: bool = False
    refund_request_created_at: str | None = None
    has_guarantee: bool = False
    has_unpaid_guarantee: bool = False
    balance_pay: bool = False
    refund_documents_required: bool = False
    is_association: bool = False


class Invoice(CamelModel):
    """Provider-independent invoice shape."""

    fiscal_number: str
    invoice_number: str
    maturity_date: datetime | None = None
    emission_date: datetime | None = None
    disconnection_date: datetime | None = None
    print_date: str | None = None
    archive_date: datetime | None = None
    issued_value: float
    balance_value: float
    state: Literal["paid", "unpaid"]
    type: str | None = None
    sector: str | None = None
    cb: str | None = None
    company_code: str | None = None
    electronic: bool = False
    account_contract: str
    has_details: bool = False
    has_pdf: bool = False
    is_downloadable: bool = False
    can_pay: bool = False
    can_activate: bool = False
    invoice_type_code: str | None = None
    payment_instalment: bool = False
    refund: bool = False
    refund_in_process: bool = False
    digital_invoice: bool = False
    refund_request_created_at: datetime | None = None
    storno: str | None = None


class InvoiceList(CamelModel):
    invoices: list[Invoice]
    count: int

    @classmethod
    def of(cls, invoices: list[Invoice]) -> "InvoiceList":
        return cls(invoices=invoices, count=len(invoices))


class PaymentResult(CamelModel):
    success: bool
    transaction_id: str | None = None
    invoice_number: str
    amount: float
    paid_at: datetime
    message: str | None = None


class RejectionResult(CamelModel):
    success: bool
    invoice_number: str
    rejected_at: datetime
    reason: str
    message: str | None = None


JobResult = Union[AccountBalance, InvoiceList, PaymentResult, RejectionResult]
