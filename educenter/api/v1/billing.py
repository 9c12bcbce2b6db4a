# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Billing API endpoints.

This module provides endpoints for monthly billing:
- POST /profiles - Create a billing profile
- GET /profiles - List billing profiles
- GET /profiles/{profile_id} - Get a billing profile
- PATCH /profiles/{profile_id} - Update a billing profile
- POST /generate - Generate ledger rows for a month
- POST /generate/backfill - Generate every missing month up to a month
- POST /statuses/refresh - Re-derive statuses of open rows
- GET /ledger - Monthly ledger with filters
- GET /debts - Outstanding debt per student
- GET /students/{student_id}/payments - A student's rows across months
- GET /payments/{payment_id} - Ledger row with transaction history
- POST /payments/{payment_id}/transactions - Record a payment
- PATCH /payments/{payment_id} - Edit a ledger row
- POST /payments/{payment_id}/cancel - Cancel a ledger row
- POST /settlements/preview - Preview a leave settlement
- POST /settlements/close - Apply a leave settlement

Every endpoint is scoped to the center given in the X-Center-Id header.
"""

import logging
from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from educenter.api.dependencies import get_center_id, get_db, get_recorded_by, get_settings
from educenter.core.config import Settings
from educenter.domains.billing import (
    BillingError,
    BillingIntegrityError,
    BillingProfileService,
    BillingReportService,
    CycleGenerator,
    GroupNotFoundError,
    InvalidPaymentAmountError,
    InvalidPaymentStatusError,
    InvalidProfileError,
    InvalidSettlementError,
    PaymentCancelledError,
    PaymentLockedError,
    PaymentNotFoundError,
    PaymentService,
    ProfileAlreadyExistsError,
    ProfileNotFoundError,
    SettlementService,
    StatusRefresher,
    StudentNotFoundError,
)
from educenter.infrastructure.database.models import MonthlyPaymentStatus
from educenter.models.billing import (
    BillingProfileCreateRequest,
    BillingProfileListResponse,
    BillingProfileResponse,
    BillingProfileUpdateRequest,
    BillingProfileUpdateResponse,
    BackfillReportResponse,
    DebtFilter,
    DebtSummaryResponse,
    GenerateMonthRequest,
    GenerationReportResponse,
    LedgerListResponse,
    LedgerSort,
    MonthlyPaymentResponse,
    PaymentHistoryResponse,
    PaymentTransactionResponse,
    RecordPaymentRequest,
    SettlementRequest,
    SettlementResponse,
    StatusRefreshResponse,
    StudentPaymentsResponse,
    UpdatePaymentRequest,
)
from educenter.utils.datetime import InvalidMonthError, parse_month

logger = logging.getLogger(__name__)

router = APIRouter()

_STATUS_BY_ERROR: list[tuple[type[BillingError], int]] = [
    (ProfileNotFoundError, status.HTTP_404_NOT_FOUND),
    (PaymentNotFoundError, status.HTTP_404_NOT_FOUND),
    (StudentNotFoundError, status.HTTP_404_NOT_FOUND),
    (GroupNotFoundError, status.HTTP_404_NOT_FOUND),
    (ProfileAlreadyExistsError, status.HTTP_409_CONFLICT),
    (PaymentLockedError, status.HTTP_409_CONFLICT),
    (PaymentCancelledError, status.HTTP_409_CONFLICT),
    (BillingIntegrityError, status.HTTP_409_CONFLICT),
    (InvalidPaymentStatusError, status.HTTP_409_CONFLICT),
    (InvalidProfileError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidPaymentAmountError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidSettlementError, status.HTTP_400_BAD_REQUEST),
]


def _raise_http(error: BillingError) -> NoReturn:
    """Translate a billing error to an HTTPException."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            raise HTTPException(status_code=status_code, detail=error.message) from error
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=error.message,
    ) from error


def _parse_month(value: str | None):
    try:
        return parse_month(value)
    except InvalidMonthError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e


# =============================================================================
# Billing profiles
# =============================================================================


@router.post(
    "/profiles",
    response_model=BillingProfileResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create billing profile",
)
async def create_profile(
    data: BillingProfileCreateRequest,
    center_id: int = Depends(get_center_id),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
) -> BillingProfileResponse:
    """Create the billing profile of a student in a group."""
    logger.info(
        "Creating billing profile: center=%s, student=%s, group=%s",
        center_id,
        data.student_id,
        data.group_id,
    )
    service = BillingProfileService(db, default_due_day=settings.billing.default_due_day)

    try:
        profile = await service.create_profile(center_id, data)
    except BillingError as e:
        _raise_http(e)
    return BillingProfileResponse.model_validate(profile)


@router.get(
    "/profiles",
    response_model=BillingProfileListResponse,
    summary="List billing profiles",
)
async def list_profiles(
    student_id: Annotated[int | None, Query(gt=0)] = None,
    group_id: Annotated[int | None, Query(gt=0)] = None,
    center_id: int = Depends(get_center_id),
    db: AsyncSession = Depends(get_db),
) -> BillingProfileListResponse:
    profiles = await BillingProfileService(db).list_profiles(
        center_id,
        student_id=student_id,
        group_id=group_id,
    )
    return BillingProfileListResponse(
        items=[BillingProfileResponse.model_validate(p) for p in profiles],
        total=len(profiles),
    )


@router.get(
    "/profiles/{profile_id}",
    response_model=BillingProfileResponse,
    summary="Get billing profile",
)
async def get_profile(
    profile_id: int,
    center_id: int = Depends(get_center_id),
    db: AsyncSession = Depends(get_db),
) -> BillingProfileResponse:
    try:
        profile = await BillingProfileService(db).get_profile(profile_id, center_id)
    except BillingError as e:
        _raise_http(e)
    return BillingProfileResponse.model_validate(profile)


@router.patch(
    "/profiles/{profile_id}",
    response_model=BillingProfileUpdateResponse,
    summary="Update billing profile",
    description=(
        "Update dates, amount or due day. A due day change moves the due date "
        "of unpaid ledger rows of this profile."
    ),
)
async def update_profile(
    profile_id: int,
    data: BillingProfileUpdateRequest,
    center_id: int = Depends(get_center_id),
    db: AsyncSession = Depends(get_db),
) -> BillingProfileUpdateResponse:
    try:
        profile, rescheduled = await BillingProfileService(db).update_profile(
            profile_id,
            data,
            center_id=center_id,
        )
    except BillingError as e:
        _raise_http(e)
    return BillingProfileUpdateResponse(
        profile=BillingProfileResponse.model_validate(profile),
        rescheduled_payments=rescheduled,
    )


# =============================================================================
# Generation and status refresh
# =============================================================================


@router.post(
    "/generate",
    response_model=GenerationReportResponse,
    summary="Generate monthly payments",
    description="Create missing ledger rows for a month. Existing rows are not changed.",
)
async def generate_month(
    data: GenerateMonthRequest,
    center_id: int = Depends(get_center_id),
    db: AsyncSession = Depends(get_db),
) -> GenerationReportResponse:
    billing_month = _parse_month(data.month)
    logger.info("Generating monthly payments: center=%s, month=%s", center_id, billing_month)

    try:
        report = await CycleGenerator(db).generate_for_month(billing_month, center_id=center_id)
    except BillingError as e:
        _raise_http(e)
    return GenerationReportResponse.model_validate(report)


@router.post(
    "/generate/backfill",
    response_model=BackfillReportResponse,
    summary="Backfill monthly payments",
    description=(
        "Create missing ledger rows for every month from each profile's join "
        "month up to the given month. Existing rows are not changed."
    ),
)
async def backfill_months(
    data: GenerateMonthRequest,
    center_id: int = Depends(get_center_id),
    db: AsyncSession = Depends(get_db),
) -> BackfillReportResponse:
    up_to_month = _parse_month(data.month)
    logger.info("Backfilling monthly payments: center=%s, up_to=%s", center_id, up_to_month)

    try:
        report = await CycleGenerator(db).generate_up_to(up_to_month, center_id=center_id)
    except BillingError as e:
        _raise_http(e)
    return BackfillReportResponse.model_validate(report)


@router.post(
    "/statuses/refresh",
    response_model=StatusRefreshResponse,
    summary="Refresh payment statuses",
)
async def refresh_statuses(
    center_id: int = Depends(get_center_id),
    db: AsyncSession = Depends(get_db),
) -> StatusRefreshResponse:
    report = await StatusRefresher(db).refresh(center_id=center_id)
    return StatusRefreshResponse.model_validate(report)


# =============================================================================
# Ledger and debts
# =============================================================================


@router.get(
    "/ledger",
    response_model=LedgerListResponse,
    summary="Monthly ledger",
)
async def list_ledger(
    month: Annotated[str | None, Query(description="Billing month (YYYY-MM)")] = None,
    payment_status: Annotated[MonthlyPaymentStatus | None, Query(alias="status")] = None,
    group_id: Annotated[int | None, Query(gt=0)] = None,
    debt: DebtFilter = DebtFilter.ALL,
    search: Annotated[str | None, Query(max_length=100)] = None,
    sort_by: LedgerSort = LedgerSort.DUE_DATE,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int | None, Query(ge=1)] = None,
    center_id: int = Depends(get_center_id),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
) -> LedgerListResponse:
    service = BillingReportService(
        db,
        default_page_size=settings.billing.default_page_size,
        max_page_size=settings.billing.max_page_size,
    )
    return await service.list_ledger(
        center_id,
        _parse_month(month),
        status=payment_status,
        group_id=group_id,
        debt=debt,
        search=search,
        sort_by=sort_by,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/debts",
    response_model=DebtSummaryResponse,
    summary="Debt summary",
    description=(
        "Outstanding balance per student for all months up to the given month. "
        "Missing ledger rows since each profile joined are generated first."
    ),
)
async def debt_summary(
    up_to_month: Annotated[str | None, Query(description="Last month (YYYY-MM)")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int | None, Query(ge=1)] = None,
    center_id: int = Depends(get_center_id),
    settings: Settings = Depends(get_settings),
    db: AsyncSession = Depends(get_db),
) -> DebtSummaryResponse:
    service = BillingReportService(
        db,
        default_page_size=settings.billing.default_page_size,
        max_page_size=settings.billing.max_page_size,
    )
    try:
        return await service.debt_summary(
            center_id,
            _parse_month(up_to_month),
            page=page,
            page_size=page_size,
        )
    except BillingError as e:
        _raise_http(e)


@router.get(
    "/students/{student_id}/payments",
    response_model=StudentPaymentsResponse,
    summary="Student payment history",
    description="Ledger rows of one student across months, newest month first.",
)
async def list_student_payments(
    student_id: int,
    group_id: Annotated[int | None, Query(gt=0)] = None,
    from_month: Annotated[str | None, Query(description="First month (YYYY-MM)")] = None,
    to_month: Annotated[str | None, Query(description="Last month (YYYY-MM)")] = None,
    center_id: int = Depends(get_center_id),
    db: AsyncSession = Depends(get_db),
) -> StudentPaymentsResponse:
    try:
        return await BillingReportService(db).list_student_payments(
            center_id,
            student_id,
            group_id=group_id,
            from_month=_parse_month(from_month) if from_month else None,
            to_month=_parse_month(to_month) if to_month else None,
        )
    except BillingError as e:
        _raise_http(e)


# =============================================================================
# Payments
# =============================================================================


@router.get(
    "/payments/{payment_id}",
    response_model=PaymentHistoryResponse,
    summary="Get monthly payment with history",
)
async def get_payment(
    payment_id: int,
    center_id: int = Depends(get_center_id),
    db: AsyncSession = Depends(get_db),
) -> PaymentHistoryResponse:
    service = PaymentService(db)
    try:
        payment = await service.get_payment(payment_id, center_id)
        transactions = await service.list_transactions(payment_id, center_id)
    except BillingError as e:
        _raise_http(e)
    return PaymentHistoryResponse(
        payment=MonthlyPaymentResponse.model_validate(payment),
        transactions=[PaymentTransactionResponse.model_validate(t) for t in transactions],
    )


@router.post(
    "/payments/{payment_id}/transactions",
    response_model=PaymentHistoryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record payment",
)
async def record_payment(
    payment_id: int,
    data: RecordPaymentRequest,
    center_id: int = Depends(get_center_id),
    recorded_by: str | None = Depends(get_recorded_by),
    db: AsyncSession = Depends(get_db),
) -> PaymentHistoryResponse:
    """Record money received for a monthly payment."""
    logger.info(
        "Recording payment: center=%s, payment=%s, amount=%s, by=%s",
        center_id,
        payment_id,
        data.amount,
        recorded_by,
    )
    service = PaymentService(db)

    try:
        payment, _ = await service.record_payment(
            payment_id,
            data.amount,
            center_id=center_id,
            payment_method=data.payment_method,
            note=data.note,
            recorded_by=recorded_by,
            paid_at=data.paid_at,
        )
        transactions = await service.list_transactions(payment_id, center_id)
    except BillingError as e:
        _raise_http(e)
    return PaymentHistoryResponse(
        payment=MonthlyPaymentResponse.model_validate(payment),
        transactions=[PaymentTransactionResponse.model_validate(t) for t in transactions],
    )


@router.patch(
    "/payments/{payment_id}",
    response_model=MonthlyPaymentResponse,
    summary="Edit monthly payment",
    description="Paid rows only accept note changes.",
)
async def update_payment(
    payment_id: int,
    data: UpdatePaymentRequest,
    center_id: int = Depends(get_center_id),
    db: AsyncSession = Depends(get_db),
) -> MonthlyPaymentResponse:
    try:
        payment = await PaymentService(db).update_payment(
            payment_id,
            center_id=center_id,
            amount_due=data.amount_due,
            due_date=data.due_date,
            status=data.status,
            note=data.note,
        )
    except BillingError as e:
        _raise_http(e)
    return MonthlyPaymentResponse.model_validate(payment)


@router.post(
    "/payments/{payment_id}/cancel",
    response_model=MonthlyPaymentResponse,
    summary="Cancel monthly payment",
)
async def cancel_payment(
    payment_id: int,
    center_id: int = Depends(get_center_id),
    db: AsyncSession = Depends(get_db),
) -> MonthlyPaymentResponse:
    try:
        payment = await PaymentService(db).cancel_payment(payment_id, center_id)
    except BillingError as e:
        _raise_http(e)
    return MonthlyPaymentResponse.model_validate(payment)


# =============================================================================
# Settlements
# =============================================================================


@router.post(
    "/settlements/preview",
    response_model=SettlementResponse,
    summary="Preview leave settlement",
)
async def preview_settlement(
    data: SettlementRequest,
    center_id: int = Depends(get_center_id),
    db: AsyncSession = Depends(get_db),
) -> SettlementResponse:
    try:
        settlement = await SettlementService(db).preview(
            data.student_id,
            data.group_id,
            data.leave_date,
            center_id=center_id,
        )
    except BillingError as e:
        _raise_http(e)
    return SettlementResponse.model_validate(settlement)


@router.post(
    "/settlements/close",
    response_model=SettlementResponse,
    summary="Close leave settlement",
    description="Write prorated amounts to the ledger and set the profile's leave date.",
)
async def close_settlement(
    data: SettlementRequest,
    center_id: int = Depends(get_center_id),
    db: AsyncSession = Depends(get_db),
) -> SettlementResponse:
    logger.info(
        "Closing settlement: center=%s, student=%s, group=%s, leave_date=%s",
        center_id,
        data.student_id,
        data.group_id,
        data.leave_date,
    )
    try:
        settlement = await SettlementService(db).close(
            data.student_id,
            data.group_id,
            data.leave_date,
            center_id=center_id,
        )
    except BillingError as e:
        _raise_http(e)
    return SettlementResponse.model_validate(settlement)
