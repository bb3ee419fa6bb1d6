# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

Modules:
    registrations: Register, unregister and schedule previews for students.
    sections: Capacity, ledger checks and schedule validation.
    swap_requests: Peer-to-peer section swaps.
    manual_join_requests: Requests to join a section past its capacity.
    drop_requests: Approved removals from a section.
"""

from fastapi import APIRouter

from coursereg.api.v1 import drop_requests, manual_join_requests, registrations, sections, swap_requests

router = APIRouter(prefix="/api/v1")

router.include_router(registrations.router, prefix="/registrations", tags=["Registrations"])
router.include_router(sections.router, prefix="/sections", tags=["Sections"])
router.include_router(swap_requests.router, prefix="/swap-requests", tags=["Swap Requests"])
router.include_router(
    manual_join_requests.router, prefix="/manual-join-requests", tags=["Manual Join Requests"]
)
router.include_router(drop_requests.router, prefix="/drop-requests", tags=["Drop Requests"])
