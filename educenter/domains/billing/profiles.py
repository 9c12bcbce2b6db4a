# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Billing profile service.

This module provides the BillingProfileService class for:
- Creating and updating per (student, group) fee configuration
- Rescheduling open ledger rows when a profile's due day changes
- Listing the profiles active for a billing month (generator read contract)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from educenter.domains.billing.calendar import (
    compute_due_date,
    round_money,
    validate_profile_values,
)
from educenter.domains.billing.exceptions import (
    GroupNotFoundError,
    ProfileAlreadyExistsError,
    ProfileNotFoundError,
    StudentNotFoundError,
)
from educenter.domains.billing.status import apply_status
from educenter.infrastructure.database.models import (
    Group,
    MonthlyPayment,
    MonthlyPaymentStatus,
    Student,
    StudentGroupBillingProfile,
)
from educenter.models.billing import (
    BillingProfileCreateRequest,
    BillingProfileUpdateRequest,
)
from educenter.utils.datetime import month_end, month_start

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActiveProfile:
    """Snapshot of a profile as read by the cycle generator."""

    profile_id: int
    center_id: int
    student_id: int
    group_id: int
    monthly_amount: Decimal
    due_day: int
    join_date: date
    leave_date: date | None

    @classmethod
    def from_model(cls, profile: StudentGroupBillingProfile) -> "ActiveProfile":
        return cls(
            profile_id=profile.id,
            center_id=profile.center_id,
            student_id=profile.student_id,
            group_id=profile.group_id,
            monthly_amount=profile.monthly_amount,
            due_day=profile.due_day,
            join_date=profile.join_date,
            leave_date=profile.leave_date,
        )


class BillingProfileService:
    """Service for billing profiles.

    Attributes:
        db: Async database session.
        default_due_day: Due day used when a request omits one.
    """

    def __init__(self, db: AsyncSession, default_due_day: int = 10) -> None:
        """Initialize billing profile service.

        Args:
            db: Async database session.
            default_due_day: Center-wide default due day.
        """
        self.db = db
        self.default_due_day = default_due_day

    async def create_profile(
        self,
        center_id: int,
        request: BillingProfileCreateRequest,
    ) -> StudentGroupBillingProfile:
        """Create a billing profile.

        Args:
            center_id: Owning center.
            request: Profile data.

        Returns:
            The created profile.

        Raises:
            StudentNotFoundError: If the student is not in the center.
            GroupNotFoundError: If the group is not in the center.
            ProfileAlreadyExistsError: If the pair already has a profile.
            InvalidProfileError: If the values are inconsistent.
        """
        due_day = request.due_day if request.due_day is not None else self.default_due_day
        validate_profile_values(
            monthly_amount=request.monthly_amount,
            due_day=due_day,
            join_date=request.join_date,
            leave_date=request.leave_date,
        )

        await self._ensure_student(center_id, request.student_id)
        await self._ensure_group(center_id, request.group_id)

        existing = await self._find(request.student_id, request.group_id)
        if existing is not None:
            raise ProfileAlreadyExistsError(
                "Billing profile already exists for this student and group",
                details={"student_id": request.student_id, "group_id": request.group_id},
            )

        profile = StudentGroupBillingProfile(
            center_id=center_id,
            student_id=request.student_id,
            group_id=request.group_id,
            join_date=request.join_date,
            leave_date=request.leave_date,
            monthly_amount=round_money(request.monthly_amount),
            due_day=due_day,
        )
        self.db.add(profile)

        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            raise ProfileAlreadyExistsError(
                "Billing profile already exists for this student and group",
                details={"student_id": request.student_id, "group_id": request.group_id},
            ) from e

        await self.db.commit()
        await self.db.refresh(profile)

        logger.info(
            "Created billing profile: id=%s, student=%s, group=%s, amount=%s, due_day=%s",
            profile.id,
            profile.student_id,
            profile.group_id,
            profile.monthly_amount,
            profile.due_day,
        )
        return profile

    async def get_profile(
        self,
        profile_id: int,
        center_id: int | None = None,
    ) -> StudentGroupBillingProfile:
        """Get a profile by ID.

        Raises:
            ProfileNotFoundError: If missing or owned by another center.
        """
        profile = await self.db.get(StudentGroupBillingProfile, profile_id)
        if profile is None or (center_id is not None and profile.center_id != center_id):
            raise ProfileNotFoundError(f"Billing profile {profile_id} not found")
        return profile

    async def get_profile_for(
        self,
        student_id: int,
        group_id: int,
        center_id: int | None = None,
    ) -> StudentGroupBillingProfile:
        """Get the profile of a (student, group) pair.

        Raises:
            ProfileNotFoundError: If the pair has no profile.
        """
        profile = await self._find(student_id, group_id)
        if profile is None or (center_id is not None and profile.center_id != center_id):
            raise ProfileNotFoundError(
                "Billing profile not found",
                details={"student_id": student_id, "group_id": group_id},
            )
        return profile

    async def list_profiles(
        self,
        center_id: int,
        student_id: int | None = None,
        group_id: int | None = None,
    ) -> list[StudentGroupBillingProfile]:
        """List profiles of a center, optionally filtered."""
        stmt = select(StudentGroupBillingProfile).where(
            StudentGroupBillingProfile.center_id == center_id
        )
        if student_id is not None:
            stmt = stmt.where(StudentGroupBillingProfile.student_id == student_id)
        if group_id is not None:
            stmt = stmt.where(StudentGroupBillingProfile.group_id == group_id)
        stmt = stmt.order_by(StudentGroupBillingProfile.id)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def update_profile(
        self,
        profile_id: int,
        request: BillingProfileUpdateRequest,
        center_id: int | None = None,
    ) -> tuple[StudentGroupBillingProfile, int]:
        """Update a profile.

        A due day change moves the due date of every non-cancelled ledger
        row of the profile that still has an outstanding balance, and
        re-derives its status. Amount changes apply to future months only.

        Returns:
            Tuple of (updated profile, number of rescheduled ledger rows).

        Raises:
            ProfileNotFoundError: If the profile does not exist.
            InvalidProfileError: If the resulting values are inconsistent.
        """
        profile = await self.get_profile(profile_id, center_id)

        join_date = request.join_date or profile.join_date
        if request.clear_leave_date:
            leave_date = None
        elif request.leave_date is not None:
            leave_date = request.leave_date
        else:
            leave_date = profile.leave_date
        monthly_amount = (
            request.monthly_amount
            if request.monthly_amount is not None
            else profile.monthly_amount
        )
        due_day = request.due_day if request.due_day is not None else profile.due_day

        validate_profile_values(
            monthly_amount=monthly_amount,
            due_day=due_day,
            join_date=join_date,
            leave_date=leave_date,
        )

        due_day_changed = due_day != profile.due_day

        profile.join_date = join_date
        profile.leave_date = leave_date
        profile.monthly_amount = round_money(monthly_amount)
        profile.due_day = due_day

        rescheduled = 0
        if due_day_changed:
            rescheduled = await self._reschedule_open_rows(profile)

        await self.db.commit()
        await self.db.refresh(profile)

        logger.info(
            "Updated billing profile: id=%s, due_day=%s, rescheduled=%d",
            profile.id,
            profile.due_day,
            rescheduled,
        )
        return profile, rescheduled

    async def list_active_profiles(
        self,
        as_of: date,
        center_id: int | None = None,
    ) -> list[ActiveProfile]:
        """Profiles billable for the month containing as_of.

        A profile is active when join_date <= last day of the month and
        leave_date is unset or >= first day of the month.
        """
        first = month_start(as_of)
        last = month_end(first)

        stmt = select(StudentGroupBillingProfile).where(
            and_(
                StudentGroupBillingProfile.join_date <= last,
                or_(
                    StudentGroupBillingProfile.leave_date.is_(None),
                    StudentGroupBillingProfile.leave_date >= first,
                ),
            )
        )
        if center_id is not None:
            stmt = stmt.where(StudentGroupBillingProfile.center_id == center_id)
        stmt = stmt.order_by(StudentGroupBillingProfile.id)

        result = await self.db.execute(stmt)
        return [ActiveProfile.from_model(p) for p in result.scalars().all()]

    async def list_profiles_joined_by(
        self,
        as_of: date,
        center_id: int | None = None,
    ) -> list[ActiveProfile]:
        """Profiles whose join date falls on or before the end of a month.

        Used for backfilling; callers check each month with
        is_active_for_month.
        """
        stmt = select(StudentGroupBillingProfile).where(
            StudentGroupBillingProfile.join_date <= month_end(as_of)
        )
        if center_id is not None:
            stmt = stmt.where(StudentGroupBillingProfile.center_id == center_id)
        stmt = stmt.order_by(StudentGroupBillingProfile.id)

        result = await self.db.execute(stmt)
        return [ActiveProfile.from_model(p) for p in result.scalars().all()]

    async def _reschedule_open_rows(self, profile: StudentGroupBillingProfile) -> int:
        stmt = select(MonthlyPayment).where(
            MonthlyPayment.student_id == profile.student_id,
            MonthlyPayment.group_id == profile.group_id,
            MonthlyPayment.status != MonthlyPaymentStatus.CANCELLED,
            MonthlyPayment.amount_paid < MonthlyPayment.amount_due,
        )
        result = await self.db.execute(stmt)

        count = 0
        for row in result.scalars().all():
            new_due_date = compute_due_date(row.billing_month, profile.due_day)
            if new_due_date == row.due_date:
                continue
            row.due_date = new_due_date
            apply_status(row)
            count += 1
        return count

    async def _find(self, student_id: int, group_id: int) -> StudentGroupBillingProfile | None:
        result = await self.db.execute(
            select(StudentGroupBillingProfile).where(
                StudentGroupBillingProfile.student_id == student_id,
                StudentGroupBillingProfile.group_id == group_id,
            )
        )
        return result.scalar_one_or_none()

    async def _ensure_student(self, center_id: int, student_id: int) -> None:
        student = await self.db.get(Student, student_id)
        if student is None or student.center_id != center_id:
            raise StudentNotFoundError(f"Student {student_id} not found")

    async def _ensure_group(self, center_id: int, group_id: int) -> None:
        group = await self.db.get(Group, group_id)
        if group is None or group.center_id != center_id:
            raise GroupNotFoundError(f"Group {group_id} not found")
