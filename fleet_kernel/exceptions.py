"""
Typed Exception Hierarchy for the Fleet Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (the back-office UI, the maintenance console, tests)
must react to failures precisely: a missing payment is reported differently
from a maintenance lock, and an idempotent replay is not an error at all.
Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (not just a message string)

Example - RIGHT way:
    try:
        allocation.apply_payment(payment_id)
    except MaintenanceInProgressError as e:
        api_response(ok=False, code=e.code, error=str(e))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from FleetLedgerError:

    FleetLedgerError (base)
    |
    +-- NotFoundError
    |   +-- PaymentNotFoundError
    |   +-- CustomerNotFoundError
    |   +-- ChargeNotFoundError
    |   +-- RentalNotFoundError
    |   +-- VehicleNotFoundError
    |   +-- FineNotFoundError
    |
    +-- ValidationError
    |   +-- InvalidPaymentError
    |   +-- InvalidChargeError
    |   +-- InvalidFineActionError
    |   +-- InvalidPnlEntryError
    |
    +-- PostingError
    |   +-- AlreadyProcessedError
    |   +-- ChargeHasApplicationsError
    |
    +-- ConcurrencyError
    |   +-- MaintenanceInProgressError
    |
    +-- TransactionFailureError
    |
    +-- ReprocessingError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                      | When Raised
-------------|---------------------------|--------------------------------------
Not found    | PAYMENT_NOT_FOUND         | Payment id doesn't exist
             | CUSTOMER_NOT_FOUND        | Customer id doesn't exist
             | CHARGE_NOT_FOUND          | Charge id doesn't exist
             | RENTAL_NOT_FOUND          | Rental id doesn't exist
             | VEHICLE_NOT_FOUND         | Vehicle id doesn't exist
             | FINE_NOT_FOUND            | Fine id doesn't exist
-------------|---------------------------|--------------------------------------
Validation   | INVALID_PAYMENT           | Non-positive amount, unknown type
             | INVALID_CHARGE            | Non-positive amount, bad scope
             | INVALID_FINE_ACTION       | Fine state does not allow action
             | INVALID_PNL_ENTRY         | P&L posting cannot be derived
-------------|---------------------------|--------------------------------------
Posting      | ALREADY_PROCESSED         | Payment already allocated (OK)
             | CHARGE_HAS_APPLICATIONS   | Deleting a charge with payments
-------------|---------------------------|--------------------------------------
Concurrency  | MAINTENANCE_IN_PROGRESS   | Reprocessing holds the ledger lock
-------------|---------------------------|--------------------------------------
Storage      | TRANSACTION_FAILURE       | Commit failed (fully rolled back)
Maintenance  | REPROCESSING_FAILED       | A payment failed during replay

===============================================================================
HANDLING GUIDANCE
===============================================================================

   - NotFoundError / ValidationError -> fix the input, do not retry
   - AlreadyProcessedError -> success, nothing new was written
   - MaintenanceInProgressError -> retry after the maintenance run
   - TransactionFailureError -> safe to retry (processing is idempotent)
   - ReprocessingError -> inspect failed_payment_id, ledger unchanged
"""


class FleetLedgerError(Exception):
    """
    Base exception for all fleet ledger errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "FLEET_LEDGER_ERROR"


# Lookup failures


class NotFoundError(FleetLedgerError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"
    entity_type: str = "entity"

    def __init__(self, entity_id):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity_type.capitalize()} not found: {entity_id}")


class PaymentNotFoundError(NotFoundError):
    code: str = "PAYMENT_NOT_FOUND"
    entity_type: str = "payment"


class CustomerNotFoundError(NotFoundError):
    code: str = "CUSTOMER_NOT_FOUND"
    entity_type: str = "customer"


class ChargeNotFoundError(NotFoundError):
    code: str = "CHARGE_NOT_FOUND"
    entity_type: str = "charge"


class RentalNotFoundError(NotFoundError):
    code: str = "RENTAL_NOT_FOUND"
    entity_type: str = "rental"


class VehicleNotFoundError(NotFoundError):
    code: str = "VEHICLE_NOT_FOUND"
    entity_type: str = "vehicle"


class FineNotFoundError(NotFoundError):
    code: str = "FINE_NOT_FOUND"
    entity_type: str = "fine"


# Validation failures


class ValidationError(FleetLedgerError):
    """Base exception for rejected input."""

    code: str = "VALIDATION_ERROR"


class InvalidPaymentError(ValidationError):
    """Payment amount is non-positive or its type is unknown."""

    code: str = "INVALID_PAYMENT"

    def __init__(self, reason: str, payment_id=None):
        self.reason = reason
        self.payment_id = str(payment_id) if payment_id is not None else None
        if payment_id is not None:
            super().__init__(f"Invalid payment {payment_id}: {reason}")
        else:
            super().__init__(f"Invalid payment: {reason}")


class InvalidChargeError(ValidationError):
    """Charge amount or scope is invalid."""

    code: str = "INVALID_CHARGE"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid charge: {reason}")


class InvalidFineActionError(ValidationError):
    """Fine status or liability does not allow the requested action."""

    code: str = "INVALID_FINE_ACTION"

    def __init__(self, fine_id, action: str, reason: str):
        self.fine_id = str(fine_id)
        self.action = action
        self.reason = reason
        super().__init__(f"Cannot {action} fine {fine_id}: {reason}")


class InvalidPnlEntryError(ValidationError):
    """A P&L posting cannot be derived from the source record."""

    code: str = "INVALID_PNL_ENTRY"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid P&L entry: {reason}")


# Posting outcomes


class PostingError(FleetLedgerError):
    """Base exception for ledger posting errors."""

    code: str = "POSTING_ERROR"


class AlreadyProcessedError(PostingError):
    """Payment has already been allocated (idempotent success)."""

    code: str = "ALREADY_PROCESSED"

    def __init__(self, payment_id):
        self.payment_id = str(payment_id)
        super().__init__(f"Payment {payment_id} already processed")


class ChargeHasApplicationsError(PostingError):
    """Charge cannot be removed while payments are applied to it."""

    code: str = "CHARGE_HAS_APPLICATIONS"

    def __init__(self, charge_id, application_count: int):
        self.charge_id = str(charge_id)
        self.application_count = application_count
        super().__init__(
            f"Charge {charge_id} has {application_count} payment application(s); "
            "unapply payments before deleting it"
        )


# Concurrency


class ConcurrencyError(FleetLedgerError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class MaintenanceInProgressError(ConcurrencyError):
    """The maintenance reprocessor holds the exclusive ledger lock."""

    code: str = "MAINTENANCE_IN_PROGRESS"

    def __init__(self, lock_name: str = "ledger"):
        self.lock_name = lock_name
        super().__init__(
            f"Ledger maintenance in progress (lock '{lock_name}' held); retry later"
        )


# Storage and maintenance


class TransactionFailureError(FleetLedgerError):
    """Underlying storage failed; the transaction was fully rolled back."""

    code: str = "TRANSACTION_FAILURE"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Transaction failed during {operation}: {detail}")


class ReprocessingError(FleetLedgerError):
    """A payment failed during full replay; nothing was rebuilt."""

    code: str = "REPROCESSING_FAILED"

    def __init__(self, failed_payment_id, cause: Exception):
        self.failed_payment_id = str(failed_payment_id)
        self.cause_code = getattr(cause, "code", type(cause).__name__)
        super().__init__(
            f"Reprocessing aborted at payment {failed_payment_id}: {cause}"
        )
