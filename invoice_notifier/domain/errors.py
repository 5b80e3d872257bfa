class InvoiceNotifierError(Exception):
    """Base exception for invoice notifier errors."""
    pass

# --- Jobs ---

class JobError(InvoiceNotifierError):
    pass

class JobValidationError(JobError):
    def __init__(self, message: str, errors: list[dict] | None = None):
        self.errors = errors or []
        super().__init__(message)

class JobNotFoundError(JobError):
    def __init__(self, job_id):
        self.job_id = job_id
        super().__init__(f"Job {job_id} not found")

class InvalidJobStateError(JobError):
    def __init__(self, current_state, target_state):
        super().__init__(f"Cannot transition from {current_state} to {target_state}")

class UnknownJobKindError(JobError):
    def __init__(self, kind):
        self.kind = kind
        super().__init__(f"Unknown job type: {kind}")

class LeaseError(JobError):
    pass

class LeaseExpiredError(LeaseError):
    pass

class LeaseNotFoundError(LeaseError):
    pass

# --- Providers ---

class ProviderError(InvoiceNotifierError):
    pass

class UnknownProviderError(ProviderError):
    def __init__(self, name: str, supported: list[str]):
        self.name = name
        self.supported = supported
        super().__init__(f"Unknown provider: {name}. Supported providers: {', '.join(supported)}")

class ProviderNotRegisteredError(ProviderError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Provider {name} is registered but not implemented")

class AuthenticationError(ProviderError):
    def __init__(self, message: str, status: int | None = None):
        self.status = status
        prefix = f"Authentication failed ({status})" if status is not None else "Authentication failed"
        super().__init__(f"{prefix}: {message}")

class UpstreamRequestError(ProviderError):
    def __init__(self, operation: str, status: int, message: str):
        self.operation = operation
        self.status = status
        super().__init__(f"Failed to {operation}: {status} {message}")

class CapabilityNotImplementedError(ProviderError):
    """The provider has no upstream endpoint for the requested capability."""

    def __init__(self, provider: str, capability: str, detail: str = ""):
        self.provider = provider
        self.capability = capability
        message = f"{capability} is not implemented for provider '{provider}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
