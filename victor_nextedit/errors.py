# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Exceptions raised inside the next-edit engine.

Only InvariantViolation is allowed to escape to callers, and only when
strict invariant checking is enabled. Everything else is recovered at the
orchestrator boundary and turned into "no suggestion".
"""

import logging

logger = logging.getLogger(__name__)


class NextEditError(Exception):
    """Base class for engine errors."""


class TransportError(NextEditError):
    """The model transport failed (network, timeout, non-2xx)."""


class CompletionParseError(NextEditError):
    """Model output could not be turned into an edit."""


class ContextUnavailableError(NextEditError):
    """A context source could not be read or was rejected."""


class InvariantViolation(NextEditError, AssertionError):
    """Internal bookkeeping is inconsistent; indicates a bug."""


def check_invariant(condition: bool, message: str, strict: bool) -> bool:
    """Verify an internal invariant.

    Args:
        condition: The invariant that should hold
        message: Description used in the error/log
        strict: Raise instead of logging

    Returns:
        True if the invariant holds, False if it was violated and logged

    Raises:
        InvariantViolation: If the invariant is violated and strict is set
    """
    if condition:
        return True
    if strict:
        raise InvariantViolation(message)
    logger.error(f"Invariant violated: {message}")
    return False
