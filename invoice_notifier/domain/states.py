from enum import StrEnum, auto

class JobState(StrEnum):
    WAITING = auto()    # Accepted, waiting for a worker
    ACTIVE = auto()     # Held by a worker (lease exists)
    COMPLETED = auto()  # Terminal, return value stored
    FAILED = auto()     # Terminal, failure reason stored

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)

class JobKind(StrEnum):
    FETCH_ACCOUNT_DATA = "fetch-account-data"
    FETCH_INVOICE = "fetch-invoice"
    PAY_INVOICE = "pay-invoice"
    REJECT_INVOICE = "reject-invoice"

class InvoiceStatus(StrEnum):
    UNPAID = auto()
    PAID = auto()
    ALL = auto()

class JobEvent(StrEnum):
    CREATED = auto()
    ACTIVATED = auto()
    COMPLETED = auto()
    FAILED = auto()
    REQUEUED = auto()
