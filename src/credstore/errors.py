# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error taxonomy for the credential store.

"User not found" is deliberately absent: it is a normal outcome, reported as
``False`` or ``ChangeOutcome.NOT_FOUND``, never raised.
"""

from __future__ import annotations


class CredstoreError(Exception):
    """Base class for every error raised by credstore."""


class HashingUnavailable(CredstoreError):
    """The password hashing primitive could not be initialised or failed."""


class PersistenceReadFailure(CredstoreError):
    """The backing file exists but could not be read or understood."""


class PersistenceWriteFailure(CredstoreError):
    """The credential table could not be written to the backing file."""


class ServiceUnavailable(CredstoreError):
    """A request arrived while the service is not running (before start or after stop)."""


class ConfigError(CredstoreError):
    """An environment variable holds a value that cannot be used."""


AlgorithmUnavailable = HashingUnavailable
