# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API middleware."""

from coursereg.api.middleware.identity import CurrentUser, IdentityMiddleware, get_current_user

__all__ = ["CurrentUser", "IdentityMiddleware", "get_current_user"]
