# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""ASGI entry point.

Run with:
    uvicorn coursereg.main:app
or:
    coursereg-api
"""

import uvicorn

from coursereg.api.app import create_app
from coursereg.core.config import get_settings

app = create_app()


def run() -> None:
    """Serve the API with uvicorn using API_HOST and API_PORT."""
    settings = get_settings()
    uvicorn.run(
        "coursereg.main:app",
        host=settings.api.host,
        port=settings.api.port,
        log_config=None,
    )
