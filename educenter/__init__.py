# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""EduCenter: monthly billing core for tutoring center LMS."""

__version__ = "0.1.0"
