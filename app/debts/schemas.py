"""
Pydantic schemas for debt management and payoff calculations.
Requests carry Decimal amounts into the engine; responses expose plain numbers.
"""
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.debts.engine import PayoffStrategy

DEBT_TYPES = {"credit_card", "student_loan", "auto_loan", "mortgage", "personal_loan", "medical", "other"}


def _normalize_debt_type(value: str) -> str:
    value = value.strip().lower()
    if value not in DEBT_TYPES:
        raise ValueError(f"Unknown debt type. Use one of: {', '.join(sorted(DEBT_TYPES))}")
    return value


class DebtCreate(BaseModel):
    """Debt creation payload."""
    debt_name: str = Field(..., min_length=1, max_length=100, description="Display name")
    debt_type: str = Field(default="other", description="Debt category")
    original_balance: Optional[Decimal] = Field(None, ge=0, description="Balance when the debt was opened")
    current_balance: Decimal = Field(..., ge=0, le=100000000, description="Principal owed today")
    interest_rate: Decimal = Field(..., ge=0, le=100, description="APR in percent (18.99 = 18.99%)")
    minimum_payment: Decimal = Field(default=Decimal("0"), ge=0, description="Monthly minimum payment")
    due_date: int = Field(default=1, ge=1, le=31, description="Day of the month the payment is due")

    @field_validator('debt_type')
    @classmethod
    def validate_debt_type(cls, v: str) -> str:
        return _normalize_debt_type(v)


class DebtUpdate(BaseModel):
    """Partial update; only fields sent are changed."""
    debt_name: Optional[str] = Field(None, min_length=1, max_length=100)
    debt_type: Optional[str] = None
    original_balance: Optional[Decimal] = Field(None, ge=0)
    current_balance: Optional[Decimal] = Field(None, ge=0, le=100000000)
    interest_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    minimum_payment: Optional[Decimal] = Field(None, ge=0)
    due_date: Optional[int] = Field(None, ge=1, le=31)
    is_active: Optional[bool] = None

    @field_validator('*')
    @classmethod
    def reject_null(cls, v: Any) -> Any:
        # Omit a field to leave it unchanged; null is not a value any column accepts
        if v is None:
            raise ValueError("Field cannot be null")
        return v

    @field_validator('debt_type')
    @classmethod
    def validate_debt_type(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _normalize_debt_type(v)


class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, description="Amount paid")
    payment_date: Optional[date] = Field(None, description="Defaults to today")
    notes: Optional[str] = Field(None, max_length=500)


class PaymentResponse(BaseModel):
    id: int
    debt_id: int
    payment_date: date
    amount: float
    principal_paid: float
    interest_paid: float
    balance_after: float
    is_extra: bool
    notes: Optional[str]

    model_config = ConfigDict(from_attributes=True)


class PaymentRecordedResponse(BaseModel):
    payment: PaymentResponse
    new_balance: float


class DebtResponse(BaseModel):
    id: int
    debt_name: str
    debt_type: str
    original_balance: float
    current_balance: float
    interest_rate: float
    minimum_payment: float
    due_date: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DebtDetailResponse(DebtResponse):
    payments: List[PaymentResponse] = Field(default_factory=list)


class CalculationRequest(BaseModel):
    """Calculator payload. Accepts the client's camelCase ``monthlyExtra``."""
    monthly_extra: Decimal = Field(default=Decimal("0"), ge=0, le=10000000, alias="monthlyExtra")
    start_date: Optional[date] = Field(None, description="Simulation start; defaults to today")

    model_config = ConfigDict(populate_by_name=True)


class PayoffEntryResponse(BaseModel):
    debt_id: Any
    name: str
    original_balance: float
    payoff_month: int
    payoff_date: date

    model_config = ConfigDict(from_attributes=True)


class DebtMonthResponse(BaseModel):
    debt_id: Any
    name: str
    balance_before: float
    interest_paid: float
    principal_paid: float
    payment: float
    extra_payment: float
    balance_after: float

    model_config = ConfigDict(from_attributes=True)


class ScheduleMonthResponse(BaseModel):
    month: int
    month_date: date
    focus_debt_id: Any
    payments: List[DebtMonthResponse]
    total_payment: float
    remaining_debts: int
    total_remaining: float

    model_config = ConfigDict(from_attributes=True)


class PayoffSummaryResponse(BaseModel):
    strategy: PayoffStrategy
    monthly_extra: float
    total_months: int
    total_interest: float
    total_paid: float
    original_total: float
    start_date: date
    payoff_date: date
    debt_payoff_order: List[PayoffEntryResponse]

    model_config = ConfigDict(from_attributes=True)


class PayoffScheduleResponse(PayoffSummaryResponse):
    schedule: List[ScheduleMonthResponse]


class RecommendationResponse(BaseModel):
    strategy: PayoffStrategy
    reason: str

    model_config = ConfigDict(from_attributes=True)


class ComparisonResponse(BaseModel):
    snowball: PayoffSummaryResponse
    avalanche: PayoffSummaryResponse
    minimum_only: Optional[PayoffSummaryResponse]
    minimum_only_error: Optional[str]
    interest_saved_with_avalanche: float
    interest_saved_vs_minimum: Optional[float] = Field(None, description="None when the baseline never pays off")
    time_saved_vs_minimum: Optional[int] = Field(None, description="None when the baseline never pays off")
    snowball_quick_wins: int
    recommendation: RecommendationResponse

    model_config = ConfigDict(from_attributes=True)


class DebtSummaryResponse(BaseModel):
    total_debts: int
    total_balance: float
    total_minimum_payments: float
    highest_rate: float
    lowest_balance: float
    monthly_extra: float
    debt_free_date: Optional[date]
    months_to_payoff: Optional[int]
    total_interest_projected: Optional[float]
    projection_error: Optional[str]


class StrategySave(BaseModel):
    """The user's chosen strategy, persisted verbatim."""
    strategy_type: PayoffStrategy
    monthly_extra: Decimal = Field(default=Decimal("0"), ge=0)
    projected_payoff_date: Optional[date] = None
    total_interest_saved: Decimal = Field(default=Decimal("0"))
    strategy_details: Dict[str, Any] = Field(default_factory=dict)


class StrategyResponse(BaseModel):
    id: int
    strategy_type: PayoffStrategy
    monthly_extra: float
    projected_payoff_date: Optional[date]
    total_interest_saved: float
    strategy_details: Dict[str, Any]
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator('strategy_details', mode='before')
    @classmethod
    def parse_details(cls, v: Any) -> Any:
        if isinstance(v, str):
            return json.loads(v or "{}")
        return v
