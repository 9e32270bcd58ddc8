"""Typed ledger errors.

Every service raises one of these instead of a bare ``ValueError`` so callers
(routers, the arq worker) can tell a rejected request from a broken ledger.
"""


class LedgerError(Exception):
    """Base class for all ledger failures."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Input rejected before any state was touched."""

    status_code = 422


class NotFoundError(LedgerError):
    """A referenced invoice, commission, allocation or item does not exist."""

    status_code = 404


class ConflictError(LedgerError):
    """Operation conflicts with current state (overpayment, replay, illegal transition)."""

    status_code = 409


class ConsistencyError(LedgerError):
    """Allocation or ledger math does not balance. Needs manual review."""

    status_code = 500


class ExternalGatewayError(LedgerError):
    """The payment processor reported a failure or timed out."""

    status_code = 502
