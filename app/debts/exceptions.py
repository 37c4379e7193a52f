"""
Typed failures raised by the payoff engine.
The HTTP layer maps them to user-facing messages; nothing here is retried.
"""
from typing import Any, Iterable, List, Optional


class DebtEngineError(Exception):
    """Base class for every payoff engine failure."""

    code = "debt_engine_error"

    def __init__(self, message: str, debt_ids: Optional[Iterable[Any]] = None):
        super().__init__(message)
        self.message = message
        self.debt_ids: List[Any] = list(debt_ids or [])

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "debt_ids": self.debt_ids}


class InvalidDebtError(DebtEngineError):
    """Input rejected before simulation (negative amounts, missing minimums, empty comparisons)."""

    code = "invalid_debt"


class NonConvergentDebtError(DebtEngineError):
    """Payments never amortize at least one debt, so no payoff date exists."""

    code = "non_convergent"
    user_message = (
        "Your minimum payment is too low to pay off this debt. "
        "It will never be paid off at this rate."
    )

    def __init__(self, message: str, debt_ids: Optional[Iterable[Any]] = None, month: int = 0):
        super().__init__(message, debt_ids)
        self.month = month

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["user_message"] = self.user_message
        payload["month"] = self.month
        return payload
