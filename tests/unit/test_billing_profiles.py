# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for BillingProfileService."""

from datetime import date
from decimal import Decimal

import pytest

from educenter.domains.billing.exceptions import (
    GroupNotFoundError,
    InvalidProfileError,
    ProfileAlreadyExistsError,
    ProfileNotFoundError,
    StudentNotFoundError,
)
from educenter.domains.billing.profiles import BillingProfileService
from educenter.infrastructure.database.models import MonthlyPaymentStatus
from educenter.models.billing import BillingProfileCreateRequest, BillingProfileUpdateRequest


def _create_request(**overrides) -> BillingProfileCreateRequest:
    values = dict(
        student_id=1,
        group_id=1,
        join_date=date(2026, 1, 5),
        monthly_amount=Decimal("300000"),
        due_day=10,
    )
    values.update(overrides)
    return BillingProfileCreateRequest(**values)


class TestCreateProfile:
    @pytest.mark.asyncio
    async def test_create_profile(self, session, seed):
        service = BillingProfileService(session)

        profile = await service.create_profile(seed.center_id, _create_request())

        assert profile.id is not None
        assert profile.center_id == seed.center_id
        assert profile.monthly_amount == Decimal("300000.00")
        assert profile.due_day == 10
        assert profile.leave_date is None

    @pytest.mark.asyncio
    async def test_default_due_day_applied(self, session, seed):
        service = BillingProfileService(session, default_due_day=5)

        profile = await service.create_profile(seed.center_id, _create_request(due_day=None))

        assert profile.due_day == 5

    @pytest.mark.asyncio
    async def test_duplicate_pair_rejected(self, session, seed, make_profile):
        await make_profile()
        service = BillingProfileService(session)

        with pytest.raises(ProfileAlreadyExistsError):
            await service.create_profile(seed.center_id, _create_request())

    @pytest.mark.asyncio
    async def test_student_of_other_center_rejected(self, session, seed):
        service = BillingProfileService(session)

        with pytest.raises(StudentNotFoundError):
            await service.create_profile(
                seed.center_id,
                _create_request(student_id=seed.other_center_student_id),
            )

    @pytest.mark.asyncio
    async def test_unknown_group_rejected(self, session, seed):
        service = BillingProfileService(session)

        with pytest.raises(GroupNotFoundError):
            await service.create_profile(seed.center_id, _create_request(group_id=999))

    @pytest.mark.asyncio
    async def test_group_of_other_center_rejected(self, session, seed):
        service = BillingProfileService(session)

        with pytest.raises(GroupNotFoundError):
            await service.create_profile(
                seed.center_id,
                _create_request(group_id=seed.other_center_group_id),
            )


class TestGetProfile:
    @pytest.mark.asyncio
    async def test_get_profile_scoped_to_center(self, session, seed, make_profile):
        profile = await make_profile()
        service = BillingProfileService(session)

        assert (await service.get_profile(profile.id, seed.center_id)).id == profile.id
        with pytest.raises(ProfileNotFoundError):
            await service.get_profile(profile.id, seed.other_center_id)

    @pytest.mark.asyncio
    async def test_get_profile_for_pair(self, session, seed, make_profile):
        profile = await make_profile(student_id=2, group_id=2)
        service = BillingProfileService(session)

        found = await service.get_profile_for(2, 2)

        assert found.id == profile.id
        with pytest.raises(ProfileNotFoundError):
            await service.get_profile_for(2, 1)

    @pytest.mark.asyncio
    async def test_list_profiles_filters(self, session, seed, make_profile):
        await make_profile(student_id=1, group_id=1)
        await make_profile(student_id=1, group_id=2)
        await make_profile(student_id=2, group_id=1)
        await make_profile(student_id=3, group_id=3, center_id=seed.other_center_id)
        service = BillingProfileService(session)

        assert len(await service.list_profiles(seed.center_id)) == 3
        assert len(await service.list_profiles(seed.center_id, student_id=1)) == 2
        assert len(await service.list_profiles(seed.center_id, group_id=1)) == 2
        assert len(await service.list_profiles(seed.other_center_id)) == 1


class TestUpdateProfile:
    @pytest.mark.asyncio
    async def test_due_day_change_reschedules_open_rows(
        self, session, seed, make_profile, make_payment
    ):
        profile = await make_profile(join_date=date(2098, 11, 1))
        open_row = await make_payment(
            billing_month=date(2099, 1, 1),
            due_date=date(2099, 1, 10),
        )
        partial_row = await make_payment(
            billing_month=date(2099, 2, 1),
            due_date=date(2099, 2, 10),
            amount_paid="100000",
        )
        paid_row = await make_payment(
            billing_month=date(2098, 12, 1),
            due_date=date(2098, 12, 10),
            amount_paid="300000",
            status=MonthlyPaymentStatus.PAID,
        )
        cancelled_row = await make_payment(
            billing_month=date(2098, 11, 1),
            due_date=date(2098, 11, 10),
            status=MonthlyPaymentStatus.CANCELLED,
        )
        service = BillingProfileService(session)

        updated, rescheduled = await service.update_profile(
            profile.id,
            BillingProfileUpdateRequest(due_day=31),
        )

        assert updated.due_day == 31
        assert rescheduled == 2
        await session.refresh(open_row)
        await session.refresh(partial_row)
        await session.refresh(paid_row)
        await session.refresh(cancelled_row)
        assert open_row.due_date == date(2099, 1, 31)
        assert partial_row.due_date == date(2099, 2, 28)
        assert open_row.status == MonthlyPaymentStatus.PENDING
        assert paid_row.due_date == date(2098, 12, 10)
        assert cancelled_row.due_date == date(2098, 11, 10)
        assert cancelled_row.status == MonthlyPaymentStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_amount_change_leaves_existing_rows(
        self, session, seed, make_profile, make_payment
    ):
        profile = await make_profile()
        row = await make_payment(amount_due="300000")
        service = BillingProfileService(session)

        updated, rescheduled = await service.update_profile(
            profile.id,
            BillingProfileUpdateRequest(monthly_amount=Decimal("350000")),
        )

        assert updated.monthly_amount == Decimal("350000.00")
        assert rescheduled == 0
        await session.refresh(row)
        assert row.amount_due == Decimal("300000")

    @pytest.mark.asyncio
    async def test_set_and_clear_leave_date(self, session, seed, make_profile):
        profile = await make_profile()
        service = BillingProfileService(session)

        updated, _ = await service.update_profile(
            profile.id,
            BillingProfileUpdateRequest(leave_date=date(2026, 3, 15)),
        )
        assert updated.leave_date == date(2026, 3, 15)

        updated, _ = await service.update_profile(
            profile.id,
            BillingProfileUpdateRequest(clear_leave_date=True),
        )
        assert updated.leave_date is None

    @pytest.mark.asyncio
    async def test_leave_before_join_rejected(self, session, seed, make_profile):
        profile = await make_profile(join_date=date(2026, 1, 5))
        service = BillingProfileService(session)

        with pytest.raises(InvalidProfileError) as exc_info:
            await service.update_profile(
                profile.id,
                BillingProfileUpdateRequest(leave_date=date(2025, 12, 31)),
            )
        assert exc_info.value.reason == "leave_before_join"

    @pytest.mark.asyncio
    async def test_unknown_profile(self, session, seed):
        service = BillingProfileService(session)

        with pytest.raises(ProfileNotFoundError):
            await service.update_profile(404, BillingProfileUpdateRequest(due_day=5))


class TestListActiveProfiles:
    @pytest.mark.asyncio
    async def test_active_window(self, session, seed, make_profile):
        await make_profile(student_id=1, group_id=1, join_date=date(2026, 1, 31))
        await make_profile(student_id=1, group_id=2, join_date=date(2026, 2, 1))
        await make_profile(
            student_id=2,
            group_id=1,
            join_date=date(2025, 6, 1),
            leave_date=date(2026, 1, 1),
        )
        await make_profile(
            student_id=2,
            group_id=2,
            join_date=date(2025, 6, 1),
            leave_date=date(2025, 12, 31),
        )
        service = BillingProfileService(session)

        active = await service.list_active_profiles(date(2026, 1, 20))

        assert {(p.student_id, p.group_id) for p in active} == {(1, 1), (2, 1)}
        assert all(p.monthly_amount == Decimal("300000") for p in active)

    @pytest.mark.asyncio
    async def test_center_filter(self, session, seed, make_profile):
        await make_profile(student_id=1, group_id=1)
        await make_profile(student_id=3, group_id=3, center_id=seed.other_center_id)
        service = BillingProfileService(session)

        active = await service.list_active_profiles(
            date(2026, 1, 1),
            center_id=seed.other_center_id,
        )

        assert [p.student_id for p in active] == [3]
