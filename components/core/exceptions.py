"""Domain errors raised by the maintenance components."""

from typing import Optional


class MaintenanceError(Exception):
    """Base class for maintenance scheduling errors."""


class NotFound(MaintenanceError):
    """A plan or execution id does not resolve."""

    def __init__(self, entity: str, identifier: object = None):
        self.entity = entity
        self.identifier = identifier
        message = f"{entity} not found" if identifier is None else f"{entity} {identifier} not found"
        super().__init__(message)


class ExecutionNotFound(NotFound):
    def __init__(self, identifier: object = None):
        super().__init__("Execution", identifier)


class InvalidRecurrence(MaintenanceError, ValueError):
    """Weekday outside 0..6 or week-of-month outside 1..4."""


class InvalidDetails(MaintenanceError, ValueError):
    """Execution details are not a structured document."""


class InvalidTransition(MaintenanceError):
    """The execution status does not allow the requested change."""


class PartialFailure(MaintenanceError):
    """
    The ledger entry was written but the execution update failed.

    The entry is left orphaned and has to be reconciled by hand.
    """

    def __init__(self, execution_id: int, ledger_entry_id: int, cause: Optional[BaseException] = None):
        self.execution_id = execution_id
        self.ledger_entry_id = ledger_entry_id
        self.cause = cause
        super().__init__(
            f"Ledger entry {ledger_entry_id} was created but execution {execution_id} "
            f"could not be marked as done"
        )


class StoreTimeout(MaintenanceError):
    """A store call exceeded its deadline; its outcome is unknown."""

    def __init__(self, what: str = "store call"):
        self.what = what
        super().__init__(f"{what} timed out, outcome unknown")
