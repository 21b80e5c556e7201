"""
Outbound notification shapes and the presentation-layer interface.

The chat front end implements Notifier; each notice carries everything it
needs to render a message without querying the store again.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class RejectionNotice:
    job_id: int
    channel_id: str
    url: str
    reason: Optional[str]
    title: Optional[str] = None
    submitter_ids: List[str] = field(default_factory=list)
    mention_ids: List[str] = field(default_factory=list)


@dataclass
class CompletionNotice:
    job_id: int
    channel_id: str
    url: str
    content: str
    summary: Dict[str, Any]
    mention_ids: List[str] = field(default_factory=list)


@dataclass
class FailureNotice:
    job_id: int
    channel_id: str
    url: str
    reason: Optional[str]
    mention_ids: List[str] = field(default_factory=list)


@dataclass
class StuckNotice:
    job_id: int
    requester_id: str
    url: str
    content: str


class Notifier(ABC):
    @abstractmethod
    async def post_rejection(self, notice: RejectionNotice) -> str:
        """Post to the moderation channel and return the message id."""
        pass

    @abstractmethod
    async def open_thread(self, channel_id: str, message_id: str, name: str):
        pass

    @abstractmethod
    async def post_completion(self, notice: CompletionNotice):
        pass

    @abstractmethod
    async def post_failure(self, notice: FailureNotice):
        pass

    @abstractmethod
    async def send_direct(self, notice: StuckNotice):
        pass


class LoggingNotifier(Notifier):
    """Writes every notice to the log. Used when no chat front end is attached."""

    async def post_rejection(self, notice: RejectionNotice) -> str:
        logger.info(
            f"[moderation:{notice.channel_id}] Rejected {notice.url}: {notice.reason} "
            f"(mentions: {', '.join(notice.mention_ids) or 'none'})"
        )
        return f"rejection-{notice.job_id}"

    async def open_thread(self, channel_id: str, message_id: str, name: str):
        logger.info(f"[moderation:{channel_id}] Thread '{name}' on {message_id}")

    async def post_completion(self, notice: CompletionNotice):
        logger.info(
            f"[results:{notice.channel_id}] {notice.content} "
            f"(title: {notice.summary.get('title')}, "
            f"mentions: {', '.join(notice.mention_ids) or 'none'})"
        )

    async def post_failure(self, notice: FailureNotice):
        logger.info(f"[results:{notice.channel_id}] Failed {notice.url}: {notice.reason}")

    async def send_direct(self, notice: StuckNotice):
        logger.info(f"[dm:{notice.requester_id}] {notice.content}")


class MentionPreferences(ABC):
    """Per-user opt-in to being mentioned; stored outside this service."""

    @abstractmethod
    async def wants_mention(self, requester_id: str) -> bool:
        pass


class MentionEveryone(MentionPreferences):
    async def wants_mention(self, requester_id: str) -> bool:
        return True
