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

"""Filters that keep secrets and non-code panels out of model context.

Two independent checks run before the host's own access policy:
- URI schemes that never hold user code (output panels, terminals, SCM input)
- File names that usually hold credentials (.env, private keys, ...)
"""

import fnmatch
from pathlib import PurePosixPath
from typing import Iterable, Optional, Set

# Editor URI schemes that show tool output rather than source code
DEFAULT_NON_CODE_SCHEMES: Set[str] = {
    "output",
    "debug",
    "vscode-scm",
    "vscode-terminal",
    "terminal",
    "vscode-log",
    "log",
    "comment",
    "vscode-settings",
    "vscode-chat-code-block",
}

# Filename globs (matched case-insensitively against the basename)
DEFAULT_SENSITIVE_PATTERNS: tuple[str, ...] = (
    ".env",
    ".env.*",
    "*.pem",
    "*.key",
    "id_rsa",
    "id_rsa.*",
    "id_ed25519",
    "id_ecdsa",
    "*.p12",
    "*.pfx",
    "*.keystore",
    "*.jks",
    "credentials*",
    "secrets*",
    ".npmrc",
    ".pypirc",
    ".netrc",
    ".pgpass",
)


def is_code_scheme(scheme: str, extra_non_code_schemes: Optional[Iterable[str]] = None) -> bool:
    """Check whether a URI scheme can hold user code.

    Args:
        scheme: URI scheme, e.g. "file" or "output"
        extra_non_code_schemes: Additional schemes to reject

    Returns:
        False for output/debug/terminal style panels
    """
    scheme = scheme.lower()
    if scheme in DEFAULT_NON_CODE_SCHEMES:
        return False
    if extra_non_code_schemes and scheme in {s.lower() for s in extra_non_code_schemes}:
        return False
    return True


def is_security_concern(
    file_path: str, extra_patterns: Optional[Iterable[str]] = None
) -> bool:
    """Check whether a file name looks like it holds credentials.

    Example:
        >>> is_security_concern("/repo/.env")
        True
        >>> is_security_concern("/repo/.env.production")
        True
        >>> is_security_concern("/repo/src/environment.py")
        False
    """
    name = PurePosixPath(file_path.replace("\\", "/")).name.lower()
    if not name:
        return False
    patterns = list(DEFAULT_SENSITIVE_PATTERNS)
    if extra_patterns:
        patterns.extend(extra_patterns)
    return any(fnmatch.fnmatchcase(name, pattern.lower()) for pattern in patterns)
