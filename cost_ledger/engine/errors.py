"""Exceptions raised by the cost engine."""


class CostEngineError(Exception):
    """Base exception for cost engine operations."""
    pass


class RecomputeAbortedError(CostEngineError):
    """
    Inputs could not be loaded; nothing was written.

    Raised when configuration, attendance, assignments or overrides
    cannot be read or parsed.
    """

    def __init__(self, message: str, area_id: str = ""):
        super().__init__(message)
        self.area_id = area_id


class InvoiceStatusUnavailableError(CostEngineError):
    """The status of a booking's invoice could not be determined."""

    def __init__(self, invoice_id: str, reason: str):
        super().__init__(f"Invoice status unavailable for {invoice_id}: {reason}")
        self.invoice_id = invoice_id
