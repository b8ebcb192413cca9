# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for the messaging service.

This package contains domain services that encapsulate business logic.

Domains:
    auth: Access token verification.
    directory: Read-only views of students, classes and staff.
    messaging: Internal messages, recipient resolution and receipts.
"""
