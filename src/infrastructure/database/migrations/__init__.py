# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database migrations package.

Alembic environment and revisions for the directory and messaging
tables. Run with ``alembic upgrade head`` from the repository root.
"""
