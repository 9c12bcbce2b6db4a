# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for EduCenter.

This package provides centralized configuration management:
- Settings: Pydantic-based settings loaded from environment variables

Example:
    >>> from educenter.core.config import load_settings
    >>> settings = load_settings()
    >>> settings.billing.default_due_day
    10
"""

from educenter.core.config.settings import (
    APISettings,
    BillingSettings,
    DatabaseSettings,
    RedisSettings,
    Settings,
    WorkerSettings,
    load_settings,
)

__all__ = [
    # Settings
    "Settings",
    "load_settings",
    # Subsettings
    "DatabaseSettings",
    "RedisSettings",
    "APISettings",
    "WorkerSettings",
    "BillingSettings",
]
