"""
FastAPI Router for debt management and payoff strategy endpoints.
Every route acts on the authenticated user's own debts.
"""
from typing import Annotated, List, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from app.auth.dependencies import get_current_user
from app.auth.models import User
from app.core.database import get_db
from app.core.logger import audit_log, get_logger_with_correlation
from app.debts import service
from app.debts.comparison import compare, summarize_debts
from app.debts.engine import PayoffStrategy, simulate
from app.debts.exceptions import DebtEngineError
from app.debts.models import Debt
from app.debts.schemas import (
    CalculationRequest,
    ComparisonResponse,
    DebtCreate,
    DebtDetailResponse,
    DebtResponse,
    DebtSummaryResponse,
    DebtUpdate,
    PaymentCreate,
    PaymentRecordedResponse,
    PaymentResponse,
    PayoffScheduleResponse,
    StrategyResponse,
    StrategySave,
)

router = APIRouter(tags=["Debts"])

RECENT_PAYMENTS_LIMIT = 50


def _engine_http_error(exc: DebtEngineError) -> HTTPException:
    """Typed engine failures become 422 responses the UI can tell apart from server errors."""
    return HTTPException(status_code=422, detail=exc.to_dict())


def _owned_debt(db: Session, debt_id: int, user: User) -> Debt:
    debt = service.get_debt(db, debt_id, user.id)
    if not debt:
        raise HTTPException(status_code=404, detail="Debt not found")
    return debt


@router.get("", response_model=List[DebtResponse])
def list_debts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return service.list_debts(db, current_user.id)


@router.post("", response_model=DebtResponse, status_code=201)
def create_debt(
    data: DebtCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return service.create_debt(db, current_user.id, data)


@router.get("/summary", response_model=DebtSummaryResponse)
def debt_summary(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
) -> DebtSummaryResponse:
    """Totals across active debts with an Avalanche debt-free projection at minimum payments."""
    accounts = service.load_debt_accounts(db, current_user.id)
    try:
        summary = summarize_debts(accounts)
    except DebtEngineError as e:
        raise _engine_http_error(e)
    return DebtSummaryResponse(**summary)


@router.get("/strategy", response_model=Optional[StrategyResponse])
def get_strategy(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return service.get_strategy(db, current_user.id)


@router.post("/strategy", response_model=StrategyResponse)
@router.put("/strategy", response_model=StrategyResponse)
def save_strategy(
    data: StrategySave,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return service.save_strategy(db, current_user.id, data)


def _run_strategy(
    strategy: PayoffStrategy,
    data: CalculationRequest,
    db: Session,
    user: User,
    correlation_id: Optional[str],
) -> PayoffScheduleResponse:
    logger = get_logger_with_correlation(correlation_id or str(uuid4()))
    accounts = service.load_debt_accounts(db, user.id)
    logger.info(f"Calculating {strategy.value}: debts={len(accounts)}, monthly_extra={data.monthly_extra}")

    try:
        result = simulate(accounts, data.monthly_extra, strategy, data.start_date)
    except DebtEngineError as e:
        logger.info(f"{strategy.value} calculation rejected: {e.code} - {e.message}")
        raise _engine_http_error(e)

    return PayoffScheduleResponse.model_validate(result)


@router.post("/calculate/snowball", response_model=PayoffScheduleResponse)
def calculate_snowball(
    data: CalculationRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    x_correlation_id: Annotated[Optional[str], Header()] = None
) -> PayoffScheduleResponse:
    """
    **Snowball**: smallest balance first.

    - **monthlyExtra**: amount paid on top of all minimums every month

    **Returns:** payoff date, total interest, payoff order and the monthly schedule.
    """
    return _run_strategy(PayoffStrategy.SNOWBALL, data, db, current_user, x_correlation_id)


@router.post("/calculate/avalanche", response_model=PayoffScheduleResponse)
def calculate_avalanche(
    data: CalculationRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    x_correlation_id: Annotated[Optional[str], Header()] = None
) -> PayoffScheduleResponse:
    """
    **Avalanche**: highest interest rate first.

    - **monthlyExtra**: amount paid on top of all minimums every month

    **Returns:** payoff date, total interest, payoff order and the monthly schedule.
    """
    return _run_strategy(PayoffStrategy.AVALANCHE, data, db, current_user, x_correlation_id)


@router.post("/calculate/compare", response_model=ComparisonResponse)
def compare_strategies(
    data: CalculationRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    x_correlation_id: Annotated[Optional[str], Header()] = None
) -> ComparisonResponse:
    """
    Compares Snowball, Avalanche and paying minimums only, and recommends a strategy.
    Savings against the minimum-only plan are null when that plan never pays the debts off.
    """
    correlation_id = x_correlation_id or str(uuid4())
    logger = get_logger_with_correlation(correlation_id)
    accounts = service.load_debt_accounts(db, current_user.id)

    try:
        result = compare(accounts, data.monthly_extra, data.start_date)
    except DebtEngineError as e:
        logger.info(f"Comparison rejected: {e.code} - {e.message}")
        raise _engine_http_error(e)

    audit_log(
        action="debt_strategy_compare",
        user=current_user.id,
        resource="debts",
        details={
            "correlation_id": correlation_id,
            "debts": len(accounts),
            "monthly_extra": data.monthly_extra,
            "recommendation": result.recommendation.strategy.value,
        }
    )
    return ComparisonResponse.model_validate(result)


@router.get("/{debt_id}", response_model=DebtDetailResponse)
def get_debt(
    debt_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
) -> DebtDetailResponse:
    debt = _owned_debt(db, debt_id, current_user)
    response = DebtDetailResponse.model_validate(debt)
    response.payments = [
        PaymentResponse.model_validate(p)
        for p in service.list_payments(db, debt, limit=RECENT_PAYMENTS_LIMIT)
    ]
    return response


@router.put("/{debt_id}", response_model=DebtResponse)
def update_debt(
    debt_id: int,
    data: DebtUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    debt = _owned_debt(db, debt_id, current_user)
    return service.update_debt(db, debt, data)


@router.delete("/{debt_id}")
def delete_debt(
    debt_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    debt = _owned_debt(db, debt_id, current_user)
    service.delete_debt(db, debt)
    return {"message": "Debt deleted successfully"}


@router.get("/{debt_id}/payments", response_model=List[PaymentResponse])
def get_payments(
    debt_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    debt = _owned_debt(db, debt_id, current_user)
    return service.list_payments(db, debt)


@router.post("/{debt_id}/payments", response_model=PaymentRecordedResponse, status_code=201)
def record_payment(
    debt_id: int,
    data: PaymentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
) -> PaymentRecordedResponse:
    debt = _owned_debt(db, debt_id, current_user)
    payment = service.record_payment(db, debt, data)
    return PaymentRecordedResponse(
        payment=PaymentResponse.model_validate(payment),
        new_balance=float(debt.current_balance),
    )
