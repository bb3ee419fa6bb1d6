# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Manual-join requests that bypass section capacity."""

from coursereg.domains.manual_join.service import ManualJoinService

__all__ = ["ManualJoinService"]
