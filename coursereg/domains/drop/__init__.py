# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Drop requests for removing a registration."""

from coursereg.domains.drop.service import DropRequestService

__all__ = ["DropRequestService"]
