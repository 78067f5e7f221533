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

"""Capture of the code visible in the user's editors.

Only the line ranges on screen are read, never whole files. Each editor
passes the scheme filter, the credential filter and the host access policy
before anything is read from it.
"""

import json
import logging
import time
from pathlib import PurePosixPath
from typing import Iterable, Optional
from urllib.parse import parse_qs, unquote, urlsplit

from victor_nextedit.context.security import is_code_scheme, is_security_concern
from victor_nextedit.host import AccessPolicy, EditorHost, EditorViewport
from victor_nextedit.protocol import (
    DiffInfo,
    DiffSide,
    VisibleCodeContext,
    VisibleEditorSnapshot,
    VisibleRange,
)

logger = logging.getLogger(__name__)

DIFF_SCHEMES = ("git", "gitfs")


def parse_uri(uri: str) -> tuple[str, str, str]:
    """Split a document URI into (scheme, path, query).

    Bare paths are treated as ``file`` URIs.
    """
    parts = urlsplit(uri)
    # Single letters are Windows drive letters, not schemes
    if not parts.scheme or len(parts.scheme) == 1:
        return "file", uri, ""
    return parts.scheme.lower(), unquote(parts.path), unquote(parts.query)


def extract_diff_info(uri: str) -> Optional[DiffInfo]:
    """Diff metadata for git revision documents, None for anything else.

    The query is either JSON (``{"path": ..., "ref": ...}``) or a form
    string (``path=...&ref=...``). An empty ref or ``~`` is the working
    copy side of the diff; any other ref is the historical side.
    """
    scheme, path, query = parse_uri(uri)
    if scheme not in DIFF_SCHEMES:
        return None

    original_path = path
    ref: Optional[str] = None
    if query:
        try:
            data = json.loads(query)
        except json.JSONDecodeError:
            form = parse_qs(query, keep_blank_values=True)
            original_path = form.get("path", [path])[0] or path
            ref = form.get("ref", [None])[0]
        else:
            if isinstance(data, dict):
                original_path = data.get("path") or path
                ref = data.get("ref")

    side = DiffSide.NEW if not ref or ref == "~" else DiffSide.OLD
    return DiffInfo(scheme=scheme, side=side, original_path=original_path, git_ref=ref or None)


def relative_to_workspace(path: str, workspace_root: Optional[str]) -> str:
    """Path relative to the workspace root, or the path itself if outside."""
    if workspace_root:
        _, root, _ = parse_uri(workspace_root)
        try:
            return str(PurePosixPath(path).relative_to(PurePosixPath(root)))
        except ValueError:
            pass
    return path.lstrip("/")


def is_viewport_allowed(
    scheme: str,
    path: str,
    relative_path: str,
    policy: AccessPolicy,
    extra_sensitive_patterns: Optional[Iterable[str]] = None,
    extra_non_code_schemes: Optional[Iterable[str]] = None,
) -> bool:
    """Apply the three context filters in order."""
    if not is_code_scheme(scheme, extra_non_code_schemes):
        logger.debug(f"Skipping non-code editor: {scheme}:{path}")
        return False
    if is_security_concern(path, extra_sensitive_patterns):
        logger.debug(f"Skipping sensitive file: {path}")
        return False
    if not check_access(policy, relative_path):
        logger.debug(f"Access policy rejected: {relative_path}")
        return False
    return True


def check_access(policy: AccessPolicy, relative_path: str) -> bool:
    """Ask the policy about a path; a failing policy rejects it."""
    try:
        return bool(policy.validate_access(relative_path))
    except Exception as e:
        logger.warning(f"Access policy failed for {relative_path}, excluding it: {e}")
        return False


async def capture_editor(
    host: EditorHost,
    viewport: EditorViewport,
    policy: AccessPolicy,
    extra_sensitive_patterns: Optional[Iterable[str]] = None,
    extra_non_code_schemes: Optional[Iterable[str]] = None,
) -> Optional[VisibleEditorSnapshot]:
    """Snapshot one editor, or None if it is filtered out or unreadable."""
    scheme, path, _ = parse_uri(viewport.uri)
    diff_info = extract_diff_info(viewport.uri)
    file_path = diff_info.original_path if diff_info else path
    relative_path = relative_to_workspace(file_path, host.workspace_root())

    if not is_viewport_allowed(
        scheme,
        file_path,
        relative_path,
        policy,
        extra_sensitive_patterns,
        extra_non_code_schemes,
    ):
        return None

    ranges: list[VisibleRange] = []
    for start_line, end_line in viewport.visible_ranges:
        try:
            content = await host.read_lines(viewport.uri, start_line, end_line)
        except Exception as e:
            logger.warning(f"Failed to read visible lines of {viewport.uri}: {e}")
            return None
        ranges.append(VisibleRange(start_line=start_line, end_line=end_line, content=content))

    return VisibleEditorSnapshot(
        file_path=file_path,
        relative_path=relative_path,
        language_id=viewport.language_id,
        is_active=viewport.is_active,
        visible_ranges=ranges,
        cursor_position=viewport.cursor,
        selections=list(viewport.selections),
        diff_info=diff_info,
    )


async def capture_visible_code(
    host: EditorHost,
    policy: AccessPolicy,
    extra_sensitive_patterns: Optional[Iterable[str]] = None,
    extra_non_code_schemes: Optional[Iterable[str]] = None,
) -> VisibleCodeContext:
    """Capture every visible editor that passes the filters.

    Args:
        host: Editor host to enumerate and read from
        policy: Ignore/security policy
        extra_sensitive_patterns: Additional credential filename globs
        extra_non_code_schemes: Additional URI schemes to skip

    Returns:
        Snapshot of all allowed editors, in host order
    """
    editors: list[VisibleEditorSnapshot] = []
    for viewport in host.visible_editors():
        snapshot = await capture_editor(
            host, viewport, policy, extra_sensitive_patterns, extra_non_code_schemes
        )
        if snapshot is not None:
            editors.append(snapshot)
    return VisibleCodeContext(timestamp=time.time(), editors=editors)
