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

"""Fill-in-the-middle strategies.

FIM models receive the text before and after the cursor unchanged; the
transport applies the model's own template. The templates here are used
to render the prompt for metadata and to scrub template tokens that leak
into the output.
"""

from typing import Optional

from victor_nextedit.protocol import CompletionContext, CompletionStyle
from victor_nextedit.strategies.protocol import ModelStrategy, WindowSize

# FIM (Fill-In-the-Middle) prompt templates per model family
FIM_TEMPLATES = {
    "default": {
        "prefix": "<PRE>",
        "suffix": "<SUF>",
        "middle": "<MID>",
        "format": "{prefix}{pre}{suffix}{suf}{middle}",
    },
    "codellama": {
        "prefix": "<PRE>",
        "suffix": " <SUF>",
        "middle": " <MID>",
        "format": "{prefix} {pre}{suffix}{suf}{middle}",
    },
    "starcoder": {
        "prefix": "<fim_prefix>",
        "suffix": "<fim_suffix>",
        "middle": "<fim_middle>",
        "format": "{prefix}{pre}{suffix}{suf}{middle}",
    },
    "deepseek": {
        "prefix": "<｜fim▁begin｜>",
        "suffix": "<｜fim▁hole｜>",
        "middle": "<｜fim▁end｜>",
        "format": "{prefix}{pre}{suffix}{suf}{middle}",
    },
    "qwen": {
        "prefix": "<|fim_prefix|>",
        "suffix": "<|fim_suffix|>",
        "middle": "<|fim_middle|>",
        "format": "{prefix}{pre}{suffix}{suf}{middle}",
    },
    "codestral": {
        "prefix": "[PREFIX]",
        "suffix": "[SUFFIX]",
        "middle": "",
        "format": "{suffix}{suf}{prefix}{pre}",
    },
}

# Tokens models emit to end a completion
END_TOKENS = (
    "<|endoftext|>",
    "</s>",
    "<|im_end|>",
    "```",
    "<|end|>",
    "<|file_separator|>",
    "<EOT>",
)

DEFAULT_STOP_SEQUENCES = ("<|endoftext|>", "</s>", "<|im_end|>", "<EOT>")


def render_fim_prompt(prefix: str, suffix: str, template_name: str = "default") -> str:
    """Format prefix/suffix with a family's template tokens."""
    template = FIM_TEMPLATES.get(template_name, FIM_TEMPLATES["default"])
    return template["format"].format(
        prefix=template["prefix"],
        pre=prefix,
        suffix=template["suffix"],
        suf=suffix,
        middle=template["middle"],
    )


def strip_fim_tokens(completion: str) -> str:
    """Remove FIM template tokens and trailing end tokens.

    Args:
        completion: Raw completion text

    Returns:
        Completion without template artifacts
    """
    for template in FIM_TEMPLATES.values():
        for key in ["prefix", "suffix", "middle"]:
            token = template[key].strip()
            if token:
                completion = completion.replace(token, "")

    # End tokens can be stacked, e.g. "<|im_end|></s>"
    stripped = True
    while stripped:
        stripped = False
        for token in END_TOKENS:
            if completion.endswith(token):
                completion = completion[: -len(token)]
                stripped = True
    return completion


def _prompt_builder(template_name: str):
    def build(context: CompletionContext) -> str:
        prefix, suffix = context.split_at_cursor()
        return render_fim_prompt(prefix, suffix, template_name)

    build.__name__ = f"build_{template_name}_fim_prompt"
    return build


def make_fim_strategy(family: str, name: Optional[str] = None) -> ModelStrategy:
    """Build the FIM strategy for a template family.

    Args:
        family: Key into FIM_TEMPLATES
        name: Registry name (defaults to the family)

    Returns:
        An insertion-style FIM strategy
    """
    if family not in FIM_TEMPLATES:
        raise ValueError(f"Unknown FIM template family: {family}")
    return ModelStrategy(
        name=name or family,
        style=CompletionStyle.FIM,
        system_prompt="",
        window_size=WindowSize(top_margin=0, bottom_margin=0),
        build_user_prompt=_prompt_builder(family),
        parse_output=strip_fim_tokens,
        stop_sequences=DEFAULT_STOP_SEQUENCES,
    )


FIM_DEFAULT = make_fim_strategy("default", name="fim-default")
