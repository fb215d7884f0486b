# ledger/core/errors.py - Structured ledger error kinds
from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base class for every error a ledger operation reports to its caller"""

    kind = "ledger_error"
    status_code = 400

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.kind, "detail": self.message}
        if self.context:
            payload["context"] = {k: str(v) for k, v in self.context.items()}
        return payload


class ValidationError(LedgerError, ValueError):
    """Bad input shape or range, rejected before any mutation"""

    kind = "validation_error"
    status_code = 422


class NotFound(LedgerError, LookupError):
    kind = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: Optional[Any] = None):
        message = f"{entity} not found" if entity_id is None else f"{entity} {entity_id} not found"
        super().__init__(message, entity=entity, entity_id=entity_id)


class HasDependents(LedgerError):
    """Delete blocked by records that still reference the target"""

    kind = "has_dependents"
    status_code = 409


class AlreadyPaid(LedgerError):
    kind = "already_paid"
    status_code = 409


class NoActiveFund(LedgerError):
    kind = "no_active_fund"
    status_code = 409


class InsufficientFunds(LedgerError):
    kind = "insufficient_funds"
    status_code = 409


class InvalidStateTransition(LedgerError):
    kind = "invalid_state_transition"
    status_code = 409


class IdentifierCollision(LedgerError):
    """Every attempt in an identifier scope hit an existing code"""

    kind = "identifier_collision"
    status_code = 503


__all__ = [
    "LedgerError",
    "ValidationError",
    "NotFound",
    "HasDependents",
    "AlreadyPaid",
    "NoActiveFund",
    "InsufficientFunds",
    "InvalidStateTransition",
    "IdentifierCollision",
]
