# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""credstore: a small email/password credential store."""

__version__ = "0.1.0"
