# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Section swaps between two enrolled students."""

from coursereg.domains.swap.service import SwapService

__all__ = ["SwapService"]
