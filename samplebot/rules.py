"""
Reply rules — keyword → canned response.

Rules are checked in order and the first match wins. A keyword matches only
as a whole word: it must not touch another word character on either side,
so "up!" matches ``up`` but "upstairs" does not. Matching is case-sensitive.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from samplebot.clients.base import Post

RUNNING_REPLY = "Yes I'm running"
FALLBACK_REPLY = "I did not understand you!"


@dataclass(frozen=True)
class KeywordRule:
    keyword: str
    reply: str
    _pattern: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        pattern = re.compile(
            rf"(?:^|\W){re.escape(self.keyword)}(?:$|\W)", re.ASCII
        )
        object.__setattr__(self, "_pattern", pattern)

    def matches(self, text: str) -> bool:
        return self._pattern.search(text) is not None


DEFAULT_RULES: tuple[KeywordRule, ...] = (
    KeywordRule("alive", RUNNING_REPLY),
    KeywordRule("up", RUNNING_REPLY),
    KeywordRule("running", RUNNING_REPLY),
    KeywordRule("hello", RUNNING_REPLY),
)


@dataclass(frozen=True)
class Reply:
    text: str
    parent_id: str = ""


class ReplyEngine:
    """Decides the reply (if any) to a message seen in the logging channel."""

    def __init__(
        self,
        log_channel_id: str,
        bot_user_id: str,
        rules: tuple[KeywordRule, ...] = DEFAULT_RULES,
        fallback: str = FALLBACK_REPLY,
    ) -> None:
        self.log_channel_id = log_channel_id
        self.bot_user_id = bot_user_id
        self.rules = rules
        self.fallback = fallback

    def decide(self, channel_id: str, post: Post | None) -> Reply | None:
        # No logging channel (degraded mode) means nothing is ours to answer
        if not self.log_channel_id or channel_id != self.log_channel_id:
            return None
        if post is None:
            return None
        if post.user_id == self.bot_user_id:
            return None

        for rule in self.rules:
            if rule.matches(post.message):
                return Reply(rule.reply, parent_id=post.id)
        return Reply(self.fallback, parent_id=post.id)
