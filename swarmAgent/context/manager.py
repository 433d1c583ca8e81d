"""
上下文管理器 - 在 token 预算内挑选对话历史

负责：
1. 估算历史的 token 数
2. 超出预算时保留 system 消息和最近 N 条消息
3. 对中间段消息打分，按分数贪心填充剩余预算
4. 为被省略的消息生成简短摘要
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Literal, Optional, Sequence

from langchain_core.messages import BaseMessage, SystemMessage

from swarmAgent.schema import ContextWindow, message_text
from swarmAgent.utils.error_handler import BudgetExceededError
from swarmAgent.utils.logging_utils import log_context_window

from .token_estimator import TokenEstimator

logger = logging.getLogger(__name__)

# ========== Scoring weights ==========
SYSTEM_WEIGHT = 100
ARTIFACT_WEIGHT = 40
MARKED_IMPORTANT_WEIGHT = 40
MENTION_WEIGHT = 25
CODE_WEIGHT = 20
DECISION_WEIGHT = 20
LONG_MESSAGE_WEIGHT = 10
QUESTION_WEIGHT = 15
RECENCY_MAX_WEIGHT = 30
LONG_MESSAGE_CHARS = 500

DECISION_KEYWORDS = (
    "decide", "choose", "select", "prefer", "important", "critical", "must", "should",
    "决定", "选择", "重要", "关键", "必须", "应该",
)
KEY_POINT_INDICATORS = (
    "decided", "chose", "selected", "implemented", "created",
    "决定", "选择了", "采用", "实现了", "创建了",
)
STOPWORDS = frozenset({
    "the", "be", "to", "of", "and", "a", "in", "that", "have", "i", "it", "for", "not",
    "on", "with", "he", "as", "you", "do", "at", "this", "there", "their", "about",
    "would", "could", "should", "which", "these", "those", "where", "while",
    "我们", "你们", "他们", "这个", "那个", "一个", "可以", "需要", "没有",
})

_SENTENCE_SPLIT = re.compile(r"[.!?。！？\n]+")
_WORD_SPLIT = re.compile(r"\W+")
_CJK_WORD = re.compile(r"[\u4e00-\u9fff]")

MAX_TOPICS = 5
MAX_KEY_POINTS = 3
KEY_POINT_CHARS = 100


@dataclass
class MessageImportance:
    """单条消息的重要性评分"""
    index: int
    score: float
    reasons: List[str] = field(default_factory=list)


class ContextManager:
    """
    上下文管理器

    Args:
        max_tokens: 窗口 token 预算
        min_messages: select_important_messages 的默认条数
        preserve_system_messages: 是否总是保留 system 消息
        preserve_recent_messages: 总是保留的最近消息条数
        floor_policy: system + 最近消息本身超预算时的处理方式
            - "exceed": 超出预算并记录警告（软下限）
            - "raise": 抛出 BudgetExceededError
    """

    def __init__(
        self,
        max_tokens: int,
        min_messages: int = 5,
        preserve_system_messages: bool = True,
        preserve_recent_messages: int = 10,
        floor_policy: Literal["exceed", "raise"] = "exceed",
        estimator: Optional[TokenEstimator] = None,
    ):
        if max_tokens <= 0:
            raise ValueError("max_tokens must be positive")
        self.max_tokens = max_tokens
        self.min_messages = min_messages
        self.preserve_system_messages = preserve_system_messages
        self.preserve_recent_messages = max(0, preserve_recent_messages)
        self.floor_policy = floor_policy
        self.estimator = estimator or TokenEstimator()

    @classmethod
    def from_settings(cls, settings) -> "ContextManager":
        """Build from ``Settings.context``."""
        ctx = settings.context
        return cls(
            max_tokens=ctx.max_tokens,
            min_messages=ctx.min_messages,
            preserve_system_messages=ctx.preserve_system_messages,
            preserve_recent_messages=ctx.preserve_recent_messages,
            floor_policy=ctx.floor_policy,
        )

    # ========== Token counting ==========

    def count_tokens(self, messages: Sequence[BaseMessage]) -> int:
        return self.estimator.count_messages(messages)

    # ========== Importance ==========

    def calculate_importance(self, message: BaseMessage, index: int, total: int) -> MessageImportance:
        """Additive importance score of ``message`` at ``index`` of a ``total``-long segment."""
        text = message_text(message)
        lowered = text.lower()
        score = 0.0
        reasons: List[str] = []

        if isinstance(message, SystemMessage):
            score += SYSTEM_WEIGHT
            reasons.append("System message")

        recency = (index / total) * RECENCY_MAX_WEIGHT if total else 0.0
        score += recency
        if recency > 20:
            reasons.append("Recent message")

        if "<artifact" in lowered:
            score += ARTIFACT_WEIGHT
            reasons.append("Contains artifact")

        if is_marked_important(message):
            score += MARKED_IMPORTANT_WEIGHT
            reasons.append("Marked important")

        if "@" in text:
            score += MENTION_WEIGHT
            reasons.append("Contains mentions")

        if "?" in text or "？" in text:
            score += QUESTION_WEIGHT
            reasons.append("Question")

        if "```" in text:
            score += CODE_WEIGHT
            reasons.append("Contains code")

        if any(keyword in lowered for keyword in DECISION_KEYWORDS):
            score += DECISION_WEIGHT
            reasons.append("Decision point")

        if len(text) > LONG_MESSAGE_CHARS:
            score += LONG_MESSAGE_WEIGHT
            reasons.append("Detailed message")

        return MessageImportance(index=index, score=score, reasons=reasons)

    def _rank(self, messages: Sequence[BaseMessage]) -> List[MessageImportance]:
        scored = [self.calculate_importance(m, i, len(messages)) for i, m in enumerate(messages)]
        # Stable sort: equal scores keep chronological order
        return sorted(scored, key=lambda s: s.score, reverse=True)

    def select_important_messages(
        self, messages: Sequence[BaseMessage], target_count: Optional[int] = None
    ) -> List[BaseMessage]:
        """Top ``target_count`` messages by importance, in original order."""
        count = self.min_messages if target_count is None else target_count
        picked = sorted(s.index for s in self._rank(messages)[:count])
        return [messages[i] for i in picked]

    # ========== Trimming ==========

    def _partition(self, messages: Sequence[BaseMessage]):
        total = len(messages)
        recent_start = max(0, total - self.preserve_recent_messages)
        recent = set(range(recent_start, total))
        system = {
            i for i, m in enumerate(messages)
            if self.preserve_system_messages and isinstance(m, SystemMessage) and i not in recent
        }
        middle = [i for i in range(total) if i not in recent and i not in system]
        return system, recent, middle

    def trim_history(self, messages: Sequence[BaseMessage]) -> List[int]:
        """Indices (chronological) of the messages kept when the history is over budget."""
        if not messages:
            return []

        system, recent, middle = self._partition(messages)
        floor_tokens = self.count_tokens([messages[i] for i in sorted(system | recent)])
        available = self.max_tokens - floor_tokens

        if available < 0:
            if self.floor_policy == "raise":
                raise BudgetExceededError(floor_tokens, self.max_tokens)
            logger.warning(
                f"Preserved messages need ~{floor_tokens:,} tokens, above the "
                f"{self.max_tokens:,} budget; keeping them anyway"
            )

        selected: List[int] = []
        used = 0
        if available > 0 and middle:
            segment = [messages[i] for i in middle]
            for ranked in self._rank(segment):
                tokens = self.estimator.estimate_message(segment[ranked.index])
                if used + tokens > available:
                    break
                selected.append(middle[ranked.index])
                used += tokens

        return sorted(system | recent | set(selected))

    # ========== Summary ==========

    def create_summary(self, omitted: Sequence[BaseMessage]) -> str:
        """Short text describing dropped messages; empty when nothing was dropped."""
        if not omitted:
            return ""
        lines = [f"[Context Summary: {len(omitted)} messages omitted]"]
        topics = extract_topics(omitted)
        if topics:
            lines.append(f"Topics discussed: {', '.join(topics)}")
        points = extract_key_points(omitted)
        if points:
            lines.append(f"Key points: {'; '.join(points)}")
        return "\n".join(lines)

    # ========== Entry point ==========

    def optimize_context(self, messages: Sequence[BaseMessage]) -> ContextWindow:
        """Budget-bound window over ``messages``.

        Returns all messages unchanged when they fit; otherwise a chronological
        subsequence plus a summary of what was left out.
        """
        messages = list(messages)
        total_tokens = self.count_tokens(messages)
        if total_tokens <= self.max_tokens:
            return ContextWindow(messages=tuple(messages), token_count=total_tokens)

        kept = self.trim_history(messages)
        kept_set = set(kept)
        window = [messages[i] for i in kept]
        omitted = [m for i, m in enumerate(messages) if i not in kept_set]
        token_count = self.count_tokens(window)

        log_context_window(logger, len(messages), len(window), token_count, self.max_tokens)
        return ContextWindow(
            messages=tuple(window),
            token_count=token_count,
            summary=self.create_summary(omitted) or None,
            omitted_count=len(omitted),
        )


# ========== Helpers ==========

def extract_topics(messages: Sequence[BaseMessage], limit: int = MAX_TOPICS) -> List[str]:
    """Most frequent non-stopword tokens of ``messages``."""
    counter: Counter = Counter()
    for message in messages:
        for word in _WORD_SPLIT.split(message_text(message).lower()):
            if not word or word in STOPWORDS or word.isdigit():
                continue
            if len(word) > 4 or (len(word) >= 2 and _CJK_WORD.search(word)):
                counter[word] += 1
    return [word for word, _ in counter.most_common(limit)]


def extract_key_points(messages: Sequence[BaseMessage], limit: int = MAX_KEY_POINTS) -> List[str]:
    """Sentences carrying a decision verb (``decided``, ``implemented``, ``决定`` ...)."""
    points: List[str] = []
    for message in messages:
        for sentence in _SENTENCE_SPLIT.split(message_text(message)):
            sentence = sentence.strip()
            if sentence and any(ind in sentence.lower() for ind in KEY_POINT_INDICATORS):
                points.append(sentence[:KEY_POINT_CHARS])
                if len(points) >= limit:
                    return points
    return points


def mark_as_important(message: BaseMessage) -> BaseMessage:
    """Copy of ``message`` flagged important; flagged messages score higher when trimming."""
    kwargs = dict(message.additional_kwargs or {})
    kwargs["important"] = True
    return message.model_copy(update={"additional_kwargs": kwargs})


def is_marked_important(message: BaseMessage) -> bool:
    return bool((message.additional_kwargs or {}).get("important"))


def create_context_manager(max_tokens: int = 8000) -> ContextManager:
    """Context manager with default preservation settings."""
    return ContextManager(
        max_tokens=max_tokens,
        min_messages=5,
        preserve_system_messages=True,
        preserve_recent_messages=10,
    )


def create_summary_message(summary: str) -> SystemMessage:
    """Wrap a context summary so it can be prepended to a prompt."""
    return SystemMessage(content=summary)
