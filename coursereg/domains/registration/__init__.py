# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Registration engine: admissions, removals and the capacity ledger."""

from coursereg.domains.registration.ledger import CapacityLedger, CapacitySnapshot, LedgerCheck
from coursereg.domains.registration.service import Admission, RegistrationService

__all__ = [
    "Admission",
    "CapacityLedger",
    "CapacitySnapshot",
    "LedgerCheck",
    "RegistrationService",
]
