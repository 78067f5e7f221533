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

"""Tree-sitter backed syntax parser.

Trees produced here are stored in document history as opaque handles; the
engine itself never walks them.
"""

import importlib
import logging
from typing import TYPE_CHECKING, Optional

from tree_sitter import Language, Parser

if TYPE_CHECKING:
    from tree_sitter import Tree

logger = logging.getLogger(__name__)


# Language package mapping for tree-sitter 0.25+
# Install grammars with: pip install tree-sitter-<language>
# Format: "language_name": ("module_name", "function_name")
LANGUAGE_MODULES: dict[str, tuple[str, str]] = {
    "python": ("tree_sitter_python", "language"),
    "javascript": ("tree_sitter_javascript", "language"),
    "javascriptreact": ("tree_sitter_javascript", "language"),
    "typescript": ("tree_sitter_typescript", "language_typescript"),
    "typescriptreact": ("tree_sitter_typescript", "language_tsx"),
    "java": ("tree_sitter_java", "language"),
    "go": ("tree_sitter_go", "language"),
    "rust": ("tree_sitter_rust", "language"),
    "c": ("tree_sitter_c", "language"),
    "cpp": ("tree_sitter_cpp", "language"),
    "csharp": ("tree_sitter_c_sharp", "language"),
    "ruby": ("tree_sitter_ruby", "language"),
    "php": ("tree_sitter_php", "language_php"),
    "bash": ("tree_sitter_bash", "language"),
    "json": ("tree_sitter_json", "language"),
}


class TreeSitterParser:
    """SyntaxParser implementation over pre-compiled tree-sitter grammars.

    Languages whose grammar package is not installed parse to None, and
    the failure is remembered so the import is not retried on every edit.
    """

    def __init__(self, language_modules: Optional[dict[str, tuple[str, str]]] = None):
        self._modules = dict(language_modules or LANGUAGE_MODULES)
        self._parsers: dict[str, Parser] = {}
        self._unavailable: set[str] = set()

    def supports(self, language_id: str) -> bool:
        return language_id in self._modules and language_id not in self._unavailable

    def get_parser(self, language_id: str) -> Optional[Parser]:
        """Parser for a language, or None if no grammar is available."""
        if language_id in self._parsers:
            return self._parsers[language_id]
        if not self.supports(language_id):
            return None

        module_name, func_name = self._modules[language_id]
        try:
            module = importlib.import_module(module_name)
            lang_obj = getattr(module, func_name)()
        except (ImportError, AttributeError) as e:
            logger.debug(f"Grammar for {language_id} unavailable ({module_name}): {e}")
            self._unavailable.add(language_id)
            return None

        lang = lang_obj if isinstance(lang_obj, Language) else Language(lang_obj)
        parser = Parser(lang)
        self._parsers[language_id] = parser
        return parser

    def parse(self, language_id: str, content: str) -> Optional["Tree"]:
        parser = self.get_parser(language_id)
        if parser is None:
            return None
        return parser.parse(content.encode("utf-8"))
