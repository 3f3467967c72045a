"""Exception types.

Every exception carries a machine-readable ``code`` so callers can branch on
type and code instead of parsing messages.
"""


class DteflowError(Exception):
    """Base class for all dteflow errors."""

    code: str = "DTEFLOW_ERROR"


class GatewayError(DteflowError):
    """An external gateway (signer, authority) could not complete a call."""

    code = "GATEWAY_ERROR"


class SigningError(GatewayError):
    """The signing gateway refused or failed to sign a document."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"Signing failed ({code}): {message}")


class CommunicationError(GatewayError):
    """Transport-level fault reaching the tax authority (retryable)."""

    code = "COM-ERR"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        if status_code is not None:
            self.code = f"HTTP-{status_code}"
        super().__init__(message)


class AuthenticationError(GatewayError):
    """The authority refused our login, or no credentials are configured.

    Not retryable: resending the same user/password cannot succeed.
    """

    code = "AUTH"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class LedgerError(DteflowError):
    """The ledger could not be read or written."""

    code = "LEDGER_ERROR"


class WorkflowCancelled(DteflowError):
    """A workflow run was cancelled before reaching a terminal state."""

    code = "WORKFLOW_CANCELLED"

    def __init__(self, status: str) -> None:
        self.status = status
        super().__init__(f"Workflow cancelled while {status}")
