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

"""Language detection and per-language metadata."""

from pathlib import PurePosixPath
from typing import Optional

EXTENSION_LANGUAGES = {
    ".py": "python",
    ".pyi": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".rs": "rust",
    ".go": "go",
    ".java": "java",
    ".c": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".h": "c",
    ".hpp": "cpp",
    ".cs": "csharp",
    ".rb": "ruby",
    ".php": "php",
    ".swift": "swift",
    ".kt": "kotlin",
    ".scala": "scala",
    ".r": "r",
    ".sql": "sql",
    ".sh": "bash",
    ".bash": "bash",
    ".zsh": "zsh",
    ".fish": "fish",
    ".md": "markdown",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".xml": "xml",
    ".html": "html",
    ".css": "css",
    ".scss": "scss",
    ".less": "less",
    ".lua": "lua",
}

# Short names used in prompt headers
LANGUAGE_SHORTHAND = {
    "python": "py",
    "javascript": "js",
    "typescript": "ts",
    "typescriptreact": "tsx",
    "javascriptreact": "jsx",
    "rust": "rs",
    "csharp": "cs",
    "ruby": "rb",
    "kotlin": "kt",
    "markdown": "md",
    "bash": "sh",
    "shellscript": "sh",
    "yaml": "yml",
}

# Statement terminators after which a fresh completion is not requested
C_LIKE_TERMINATORS = (";", ")", "}")
LANGUAGE_TERMINATORS: dict[str, tuple[str, ...]] = {
    "javascript": C_LIKE_TERMINATORS,
    "typescript": C_LIKE_TERMINATORS,
    "typescriptreact": C_LIKE_TERMINATORS,
    "javascriptreact": C_LIKE_TERMINATORS,
    "java": C_LIKE_TERMINATORS,
    "c": C_LIKE_TERMINATORS,
    "cpp": C_LIKE_TERMINATORS,
    "csharp": C_LIKE_TERMINATORS,
    "go": C_LIKE_TERMINATORS,
    "rust": C_LIKE_TERMINATORS,
    "php": C_LIKE_TERMINATORS,
    "swift": C_LIKE_TERMINATORS,
    "kotlin": C_LIKE_TERMINATORS,
    "scala": C_LIKE_TERMINATORS,
    "python": (")", "]", "}"),
    "ruby": (")", "]", "}", "end"),
    "bash": (";", "fi", "done", "esac"),
    "shellscript": (";", "fi", "done", "esac"),
    "zsh": (";", "fi", "done", "esac"),
    "sql": (";",),
    "markdown": (),
    "html": (),
    "xml": (),
    "text": (),
    "plaintext": (),
}


def detect_language(file_path: str, content: str = "") -> str:
    """Detect language from file path and content.

    Args:
        file_path: Path or URI of the file
        content: File content, used for the shebang fallback

    Returns:
        Language identifier ("text" if unknown)
    """
    ext = PurePosixPath(file_path).suffix.lower()
    if ext in EXTENSION_LANGUAGES:
        return EXTENSION_LANGUAGES[ext]

    if content.startswith("#!"):
        first_line = content.split("\n", 1)[0]
        if "python" in first_line:
            return "python"
        if "node" in first_line:
            return "javascript"
        if "ruby" in first_line:
            return "ruby"
        if "bash" in first_line or first_line.endswith("/sh"):
            return "bash"

    return "text"


def language_shorthand(language_id: str) -> str:
    return LANGUAGE_SHORTHAND.get(language_id, language_id)


def statement_terminators(language_id: Optional[str]) -> tuple[str, ...]:
    """Terminators for a language; unknown languages use the C-like set."""
    if language_id is None:
        return C_LIKE_TERMINATORS
    return LANGUAGE_TERMINATORS.get(language_id.lower(), C_LIKE_TERMINATORS)
