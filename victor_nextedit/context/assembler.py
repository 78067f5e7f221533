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

"""Context assembly for completion requests.

Combines visible code, snippet sources and edit history into the
CompletionContext a model strategy turns into a prompt.

Snippet groups are concatenated in a fixed order (recently viewed, static,
recently edited by default). Every snippet passes the same security filter
as visible editors, whichever source produced it. A source that fails is
left out of this request only.
"""

import logging
from dataclasses import replace
from pathlib import PurePosixPath
from typing import Optional, Sequence

from victor_nextedit.config import NextEditSettings, get_settings
from victor_nextedit.context.recent import (
    RecentlyEditedTracker,
    RecentlyVisitedRangesService,
    StaticSnippetSource,
)
from victor_nextedit.context.security import is_security_concern
from victor_nextedit.context.visible_code import (
    capture_visible_code,
    check_access,
    relative_to_workspace,
)
from victor_nextedit.errors import ContextUnavailableError
from victor_nextedit.history.prev_edits import PrevEditCache, get_prev_edit_cache
from victor_nextedit.host import AccessPolicy, AllowAllPolicy, EditorHost, SnippetProvider
from victor_nextedit.languages import detect_language, language_shorthand
from victor_nextedit.protocol import (
    CodeSnippet,
    CompletionContext,
    CompletionRequest,
    SnippetSource,
    VisibleCodeContext,
)
from victor_nextedit.tokens import TokenCounter, approximate_token_count, truncate_to_token_budget

logger = logging.getLogger(__name__)


def _same_file(a: str, b: str) -> bool:
    return PurePosixPath(a.replace("\\", "/")) == PurePosixPath(b.replace("\\", "/"))


class ContextAssembler:
    """Builds per-request completion context.

    Example:
        assembler = ContextAssembler(host, policy=my_policy)
        context = await assembler.build_context(request, (10, 20))
    """

    def __init__(
        self,
        host: Optional[EditorHost] = None,
        policy: Optional[AccessPolicy] = None,
        settings: Optional[NextEditSettings] = None,
        prev_edit_cache: Optional[PrevEditCache] = None,
        recently_viewed: Optional[RecentlyVisitedRangesService] = None,
        static_snippets: Optional[SnippetProvider] = None,
        recently_edited: Optional[RecentlyEditedTracker] = None,
        count_tokens: TokenCounter = approximate_token_count,
    ):
        """Initialize the assembler.

        Args:
            host: Editor host; without one no visible code is captured
            policy: Ignore/security policy (allows everything if omitted)
            settings: Engine settings (process-wide settings if omitted)
            prev_edit_cache: Edit history (process-wide cache if omitted)
            recently_viewed: Recently visited ranges source
            static_snippets: Static snippet source
            recently_edited: Recently edited ranges source
            count_tokens: Token counter used for the snippet budget
        """
        self._settings = settings or get_settings()
        self._host = host
        self._policy = policy or AllowAllPolicy()
        self._prev_edits = prev_edit_cache
        self._count_tokens = count_tokens

        self.recently_viewed = recently_viewed or RecentlyVisitedRangesService(
            max_files=self._settings.recently_visited_max_files,
            context_lines=self._settings.recently_visited_context_lines,
        )
        self.recently_edited = recently_edited or RecentlyEditedTracker(
            max_ranges=self._settings.recently_edited_max_ranges,
            max_age_seconds=self._settings.recently_edited_max_age_seconds,
        )
        self.static_snippets = static_snippets or StaticSnippetSource(
            self._settings.static_snippets
        )
        self._sources: dict[SnippetSource, SnippetProvider] = {
            SnippetSource.RECENTLY_VIEWED: self.recently_viewed,
            SnippetSource.STATIC: self.static_snippets,
            SnippetSource.RECENTLY_EDITED: self.recently_edited,
        }

    @property
    def prev_edit_cache(self) -> PrevEditCache:
        return self._prev_edits if self._prev_edits is not None else get_prev_edit_cache()

    async def capture_visible_code(self) -> VisibleCodeContext:
        """Snapshot what every allowed editor currently shows."""
        if self._host is None:
            return VisibleCodeContext(timestamp=0.0, editors=[])
        return await capture_visible_code(
            self._host,
            self._policy,
            extra_sensitive_patterns=self._settings.extra_sensitive_patterns,
            extra_non_code_schemes=self._settings.extra_non_code_schemes,
        )

    def is_snippet_allowed(self, snippet: CodeSnippet) -> bool:
        """Credential and policy filter applied to every snippet."""
        if is_security_concern(snippet.file_path, self._settings.extra_sensitive_patterns):
            logger.debug(f"Dropping snippet from sensitive file: {snippet.file_path}")
            return False
        root = self._host.workspace_root() if self._host is not None else None
        relative_path = relative_to_workspace(snippet.file_path, root)
        if not check_access(self._policy, relative_path):
            logger.debug(f"Access policy rejected snippet: {relative_path}")
            return False
        return True

    async def gather_snippets(
        self,
        current_file: Optional[str] = None,
        order: Optional[Sequence[SnippetSource]] = None,
        token_budget: Optional[int] = None,
    ) -> list[CodeSnippet]:
        """Collect context snippets in priority order.

        Args:
            current_file: File being completed; its own snippets are skipped
            order: Group order (settings order if omitted)
            token_budget: The snippet crossing this budget is cut line-wise
                from its tail; later snippets are dropped

        Returns:
            Deduplicated, filtered snippets
        """
        order = list(order) if order is not None else list(self._settings.snippet_order)
        budget = self._settings.snippet_token_budget if token_budget is None else token_budget

        collected: list[CodeSnippet] = []
        for source in order:
            if source is SnippetSource.VISIBLE_CODE:
                continue
            collected.extend(await self._read_source(source))
            if source is SnippetSource.RECENTLY_VIEWED:
                collected.extend(await self._read_visible_code())

        result: list[CodeSnippet] = []
        seen: set[tuple[str, str]] = set()
        used = 0
        for snippet in collected:
            if current_file and _same_file(snippet.file_path, current_file):
                continue
            key = (snippet.file_path, snippet.content)
            if key in seen:
                continue
            if not self.is_snippet_allowed(snippet):
                continue
            cost = self._count_tokens(snippet.content)
            if used + cost > budget:
                logger.debug(f"Snippet budget of {budget} tokens reached at {snippet.file_path}")
                truncated = truncate_to_token_budget(
                    snippet.content, budget - used, self._count_tokens
                )
                if truncated.strip():
                    result.append(replace(snippet, content=truncated))
                break
            seen.add(key)
            used += cost
            result.append(snippet)
        return result

    async def build_context(
        self,
        request: CompletionRequest,
        region: tuple[int, int],
        order: Optional[Sequence[SnippetSource]] = None,
        token_budget: Optional[int] = None,
    ) -> CompletionContext:
        """Build the context for one request.

        Args:
            request: The triggering request
            region: Editable region as (start_line, end_line)
            order: Snippet group order override
            token_budget: Snippet budget override

        Returns:
            A fresh CompletionContext
        """
        language_id = request.language_id or detect_language(request.file_path, request.content)
        snippets = await self.gather_snippets(request.file_path, order, token_budget)
        diffs = [edit.diff_text for edit in self.prev_edit_cache.get_prev_edits_descending()]

        return CompletionContext(
            current_file_content=request.content,
            editable_region_start_line=region[0],
            editable_region_end_line=region[1],
            cursor_position=request.cursor,
            file_path=request.file_path,
            language_shorthand=language_shorthand(language_id),
            language_id=language_id,
            recently_viewed_snippets=snippets,
            edit_diff_history=diffs,
        )

    async def _read_source(self, source: SnippetSource) -> list[CodeSnippet]:
        provider = self._sources.get(source)
        if provider is None:
            return []
        try:
            return list(await provider.get_snippets())
        except ContextUnavailableError as e:
            logger.debug(f"Snippet source {source.value} unavailable: {e}")
        except Exception as e:
            logger.warning(f"Snippet source {source.value} failed: {e}")
        return []

    async def _read_visible_code(self) -> list[CodeSnippet]:
        try:
            return await self._visible_code_snippets()
        except ContextUnavailableError as e:
            logger.debug(f"Visible code unavailable: {e}")
        except Exception as e:
            logger.warning(f"Visible code capture failed: {e}")
        return []

    async def _visible_code_snippets(self) -> list[CodeSnippet]:
        visible = await self.capture_visible_code()
        snippets = []
        for editor in visible.editors:
            content = "\n".join(r.content for r in editor.visible_ranges)
            if not content.strip():
                continue
            snippets.append(
                CodeSnippet(
                    file_path=editor.file_path,
                    content=content,
                    source=SnippetSource.VISIBLE_CODE,
                )
            )
        return snippets
