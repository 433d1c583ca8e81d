"""
Token 估算器

不依赖具体 tokenizer 的粗略估算：
- CJK 字符（汉字、假名、谚文、全角标点）约 1.5 字符 / token
- 其他字符约 4 字符 / token
"""

from __future__ import annotations

import math
import re
from typing import Iterable

from langchain_core.messages import BaseMessage

from swarmAgent.schema import message_text

CJK_CHARS_PER_TOKEN = 1.5
OTHER_CHARS_PER_TOKEN = 4.0

_CJK_PATTERN = re.compile(
    "["
    "\u3400-\u4dbf"  # CJK Extension A
    "\u4e00-\u9fff"  # CJK Unified Ideographs
    "\uf900-\ufaff"  # CJK Compatibility Ideographs
    "\u3040-\u309f"  # Hiragana
    "\u30a0-\u30ff"  # Katakana
    "\u1100-\u11ff"  # Hangul Jamo
    "\u3130-\u318f"  # Hangul Compatibility Jamo
    "\uac00-\ud7af"  # Hangul Syllables
    "\u3000-\u303f"  # CJK punctuation
    "\uff00-\uffef"  # Full-width forms
    "]"
)


class TokenEstimator:
    """Language-aware token estimate for text spans and message lists."""

    def __init__(
        self,
        cjk_chars_per_token: float = CJK_CHARS_PER_TOKEN,
        other_chars_per_token: float = OTHER_CHARS_PER_TOKEN,
    ):
        self.cjk_chars_per_token = cjk_chars_per_token
        self.other_chars_per_token = other_chars_per_token

    def estimate(self, text: str) -> int:
        """Estimated tokens of ``text``; empty text costs 0."""
        if not text:
            return 0
        cjk = len(_CJK_PATTERN.findall(text))
        other = len(text) - cjk
        return math.ceil(cjk / self.cjk_chars_per_token + other / self.other_chars_per_token)

    def estimate_message(self, message: BaseMessage) -> int:
        return self.estimate(message_text(message))

    def count_messages(self, messages: Iterable[BaseMessage]) -> int:
        return sum(self.estimate_message(m) for m in messages)


_DEFAULT = TokenEstimator()


def estimate_tokens(text: str) -> int:
    """Module-level shortcut using the default ratios."""
    return _DEFAULT.estimate(text)
