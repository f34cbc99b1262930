from __future__ import annotations
import re
from dataclasses import dataclass
from uuid import UUID
import structlog
from sqlalchemy import delete
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.moment import MomentMessage
from app.models.safety import Flag
from app.services.moments import set_status
from app.errors import NotFound

log = structlog.get_logger()


@dataclass(frozen=True)
class ModerationRules:
    banned_terms: tuple[str, ...]
    patterns: tuple[re.Pattern, ...]


@dataclass(frozen=True)
class ModerationResult:
    flagged: bool
    reason: str | None = None   # banned_term | suspicious_pattern
    matched: str | None = None


URL_RE = re.compile(r"\b(?:https?|www)\b", re.IGNORECASE)
PHONE_RE = re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b")
EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
MONEY_RE = re.compile(r"\$\d+")
PLATFORM_RE = re.compile(r"\b(?:telegram|whatsapp|snapchat|instagram|onlyfans)\b", re.IGNORECASE)

MESSAGE_RULES = ModerationRules(
    banned_terms=(
        # profanity
        "fuck", "shit", "bitch", "asshole", "damn", "crap", "bastard",
        # slurs
        "nigger", "faggot", "retard", "tranny",
        # sexual content
        "porn", "xxx", "sex", "nude", "naked", "dick", "cock", "pussy", "boobs", "tits",
        # drugs
        "cocaine", "heroin", "meth", "weed", "marijuana", "drugs",
        # violence
        "kill", "murder", "rape", "bomb", "terrorist", "weapon", "gun",
        # scams
        "bitcoin", "crypto", "investment", "money", "cash", "paypal", "venmo",
        # spam
        "click here", "free money", "get rich", "buy now", "discount", "promo",
    ),
    patterns=(URL_RE, PHONE_RE, EMAIL_RE, MONEY_RE, PLATFORM_RE),
)

TITLE_RULES = ModerationRules(
    banned_terms=("drug", "weapon", "illegal", "scam"),
    patterns=(
        re.compile(r"\b(?:free\s+money|get\s+rich|click\s+here)\b", re.IGNORECASE),
        re.compile(r"\b(?:buy|sell|discount|promo)\b", re.IGNORECASE),
    ),
)


def classify(text: str, rules: ModerationRules = MESSAGE_RULES) -> ModerationResult:
    """Banned terms first, then patterns. The first hit wins."""
    if not text:
        return ModerationResult(flagged=False)
    lowered = text.lower()
    for term in (*rules.banned_terms, *settings.moderation_extra_terms):
        if term.lower() in lowered:
            return ModerationResult(flagged=True, reason="banned_term", matched=term)
    for pattern in rules.patterns:
        m = pattern.search(text)
        if m:
            return ModerationResult(flagged=True, reason="suspicious_pattern", matched=m.group(0))
    return ModerationResult(flagged=False)


async def insert_flag_once(
    session: AsyncSession, *, reporter_id: UUID, target_type: str, target_id: UUID, reason: str
) -> bool:
    """INSERT ... ON CONFLICT DO NOTHING on (reporter, target). True when a row was written."""
    stmt = (
        pg_insert(Flag)
        .values(reporter_id=reporter_id, target_type=target_type, target_id=target_id, reason=reason)
        .on_conflict_do_nothing(index_elements=["reporter_id", "target_type", "target_id"])
        .returning(Flag.id)
    )
    return (await session.scalar(stmt)) is not None


async def moderate_message(
    session: AsyncSession, message_id: UUID, content: str, actor_id: UUID
) -> ModerationResult:
    """
    Classify a stored message. A flagged message is deleted and an
    `inappropriate` flag is recorded against it for `actor_id`.
    """
    result = classify(content, MESSAGE_RULES)
    if not result.flagged:
        return result
    await session.execute(delete(MomentMessage).where(MomentMessage.id == message_id))
    await insert_flag_once(
        session, reporter_id=actor_id, target_type="message", target_id=message_id, reason="inappropriate"
    )
    await session.commit()
    log.warning("message_moderated", message_id=str(message_id), reason=result.reason, matched=result.matched, action="deleted")
    return result


async def moderate_moment_title(session: AsyncSession, moment_id: UUID, title: str) -> ModerationResult:
    """Classify a moment title; a flagged moment is hidden, not deleted."""
    result = classify(title, TITLE_RULES)
    if not result.flagged:
        return result
    try:
        await set_status(session, moment_id, "hidden")
    except NotFound:
        # deleted between create and moderation; nothing left to hide
        log.info("moment_moderation_target_gone", moment_id=str(moment_id))
        return result
    log.warning("moment_moderated", moment_id=str(moment_id), reason=result.reason, matched=result.matched, action="hidden")
    return result
