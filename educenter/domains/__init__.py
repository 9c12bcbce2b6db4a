# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for EduCenter.

Domains:
    billing: Billing profiles, monthly ledger generation, payments,
        leave settlements and debt reporting.
"""
