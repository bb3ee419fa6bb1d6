# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Course registration and scheduling consistency engine."""

__version__ = "0.1.0"
