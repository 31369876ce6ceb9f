"""
Error taxonomy for the bill engine.

Services raise these; the handlers registered in ``tripsplit.main`` turn them
into JSON responses. Routes never catch them.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional
from tripsplit.core.money import format_money


class TripSplitError(Exception):
    """Base class for every error the core reports to a caller."""
    status_code = 400
    error = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error, "message": self.message}


class ValidationError(TripSplitError):
    """Malformed input, rejected before any computation or write."""
    status_code = 422
    error = "validation_error"

    def __init__(self, message: str, details: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.details = details or []

    @classmethod
    def for_field(cls, field: str, message: str, item: Optional[str] = None) -> "ValidationError":
        detail = {"field": field, "message": message}
        if item is not None:
            detail["item"] = item
        return cls(message, [detail])

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.details:
            data["details"] = self.details
        return data


class SplitMismatchError(TripSplitError):
    """Sum of an item's splits differs from the item total."""
    status_code = 422
    error = "split_mismatch"

    def __init__(self, item: str, submitted_sum: Decimal, expected_total: Decimal, item_name: Optional[str] = None):
        self.item = item
        self.item_name = item_name
        self.submitted_sum = submitted_sum
        self.expected_total = expected_total
        self.delta = submitted_sum - expected_total
        label = f"'{item_name}' ({item})" if item_name else item
        super().__init__(
            f"Splits for item {label} sum to {submitted_sum}, expected {expected_total}"
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "item": self.item,
            "itemName": self.item_name,
            "submittedSum": format_money(self.submitted_sum),
            "expectedTotal": format_money(self.expected_total),
            "delta": format_money(self.delta),
        })
        return data


class NotFoundError(TripSplitError):
    """Referenced bill, trip, item or user does not exist."""
    status_code = 404
    error = "not_found"


class PermissionDeniedError(TripSplitError):
    """Caller is not a member (or not the owner) of the trip."""
    status_code = 403
    error = "forbidden"


class TransactionError(TripSplitError):
    """Storage failed mid-transaction; everything was rolled back."""
    status_code = 503
    error = "transaction_failed"

    def __init__(self, message: str = "Storage transaction failed, please retry"):
        super().__init__(message)


class ExternalServiceError(TripSplitError):
    """A collaborator outside the core (receipt parser) failed."""
    status_code = 502
    error = "external_service_error"
