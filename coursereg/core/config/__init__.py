# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package.

Example:
    >>> from coursereg.core.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.environment)
    'development'
"""

from coursereg.core.config.settings import (
    APISettings,
    DatabaseSettings,
    RegistrationSettings,
    Settings,
    SMTPSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "APISettings",
    "DatabaseSettings",
    "RegistrationSettings",
    "SMTPSettings",
    "Settings",
    "clear_settings_cache",
    "get_settings",
]
