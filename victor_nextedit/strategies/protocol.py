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

"""Model strategy record.

A strategy captures everything that differs between model families: the
system prompt, the editable window, prompt construction and output
parsing. Strategies are immutable records of values and plain functions,
registered once and shared by every request.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from victor_nextedit.errors import CompletionParseError
from victor_nextedit.protocol import (
    CompletionContext,
    CompletionEdit,
    CompletionStyle,
    Position,
    Range,
    SnippetSource,
)
from victor_nextedit.strategies.region import (
    DEFAULT_REGION_TOKEN_BUDGET,
    EditableRegion,
    fixed_margin_region,
    token_budget_region,
)
from victor_nextedit.tokens import TokenCounter


@dataclass(frozen=True)
class WindowSize:
    """Lines kept above and below the cursor in the editable region."""

    top_margin: int
    bottom_margin: int


@dataclass(frozen=True)
class PromptMessage:
    role: str
    content: str


@dataclass(frozen=True)
class PromptMetadata:
    """Prompt plus the pieces it was built from, for logging and telemetry."""

    strategy: str
    style: CompletionStyle
    user_prompt: str
    user_edits: str
    user_excerpts: str
    editable_region: EditableRegion
    language_shorthand: str


PromptBuilder = Callable[[CompletionContext], str]
OutputParser = Callable[[str], str]


@dataclass(frozen=True)
class ModelStrategy:
    """Everything model-family specific, as plain data.

    Attributes:
        name: Registry name, e.g. "mercury-coder"
        style: FIM (prefix/suffix) or CHAT (system + user messages)
        system_prompt: System message for chat strategies
        window_size: Editable region margins around the cursor
        build_user_prompt: Renders the user message (or FIM prompt text)
        parse_output: Extracts the completion from raw model text
        unique_token: Delimiter that identifies the edit in model output
        replaces_region: Output replaces the editable region rather than
            being inserted at the cursor
        snippet_order: Snippet group order override
        snippet_token_budget: Snippet budget override
        stop_sequences: Stop sequences sent with FIM requests
    """

    name: str
    style: CompletionStyle
    system_prompt: str
    window_size: WindowSize
    build_user_prompt: PromptBuilder
    parse_output: OutputParser
    unique_token: Optional[str] = None
    replaces_region: bool = False
    snippet_order: Optional[tuple[SnippetSource, ...]] = None
    snippet_token_budget: Optional[int] = None
    stop_sequences: tuple[str, ...] = ()

    @property
    def supports_fim(self) -> bool:
        return self.style is CompletionStyle.FIM

    def get_system_prompt(self) -> str:
        return self.system_prompt

    def get_window_size(self) -> WindowSize:
        return self.window_size

    def calculate_editable_region(
        self,
        content: str,
        cursor: Position,
        use_full_file_diff: bool = False,
        count_tokens: Optional[TokenCounter] = None,
        token_budget: int = DEFAULT_REGION_TOKEN_BUDGET,
    ) -> EditableRegion:
        """Editable region for a document and cursor.

        Args:
            content: Current document text
            cursor: Cursor position
            use_full_file_diff: Grow the region by token budget instead of
                using the fixed window
            count_tokens: Token counter for the budget mode
            token_budget: Budget for the budget mode

        Returns:
            Inclusive line range, clamped to the document
        """
        lines = content.split("\n")
        if use_full_file_diff:
            return token_budget_region(lines, cursor.line, token_budget, count_tokens)
        return fixed_margin_region(
            len(lines), cursor.line, self.window_size.top_margin, self.window_size.bottom_margin
        )

    def generate_prompts(self, context: CompletionContext) -> list[PromptMessage]:
        """Messages for the model; deterministic for a given context."""
        messages = []
        if self.style is CompletionStyle.CHAT and self.system_prompt:
            messages.append(PromptMessage(role="system", content=self.system_prompt))
        messages.append(PromptMessage(role="user", content=self.build_user_prompt(context)))
        return messages

    def build_prompt_metadata(self, context: CompletionContext) -> PromptMetadata:
        return PromptMetadata(
            strategy=self.name,
            style=self.style,
            user_prompt=self.build_user_prompt(context),
            user_edits="\n".join(context.edit_diff_history),
            user_excerpts="\n\n".join(s.content for s in context.recently_viewed_snippets),
            editable_region=EditableRegion(
                context.editable_region_start_line, context.editable_region_end_line
            ),
            language_shorthand=context.language_shorthand,
        )

    def extract_completion(self, raw_text: str) -> str:
        """Completion text without any delimiter markers.

        Raises:
            CompletionParseError: If the parser cannot make sense of the output
        """
        try:
            return self.parse_output(raw_text)
        except (ValueError, IndexError) as e:
            raise CompletionParseError(f"{self.name}: unparseable model output: {e}") from e

    def to_edit(self, text: str, context: CompletionContext) -> CompletionEdit:
        """Place extracted text in the document.

        Region-replacing strategies cover the whole editable region; the
        others insert at the cursor.
        """
        if not self.replaces_region:
            return CompletionEdit(
                text=text, range=Range.empty(context.cursor_position), style=self.style
            )
        lines = context.lines
        start = max(0, min(context.editable_region_start_line, len(lines) - 1))
        end = max(start, min(context.editable_region_end_line, len(lines) - 1))
        return CompletionEdit(
            text=text,
            range=Range(start=Position(start, 0), end=Position(end, len(lines[end]))),
            style=self.style,
        )
