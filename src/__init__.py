"""VAC music school backend: messaging and notifications.

Internal messages, class event notifications and multi-channel delivery
(in-app, email, WhatsApp) with per-recipient delivery and read tracking.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
