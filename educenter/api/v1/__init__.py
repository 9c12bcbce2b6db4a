# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

Modules:
    billing: Billing profiles, monthly ledger, payments, settlements.
"""

from fastapi import APIRouter

from educenter.api.v1 import billing

router = APIRouter(prefix="/api/v1")

router.include_router(billing.router, prefix="/billing", tags=["Billing"])
