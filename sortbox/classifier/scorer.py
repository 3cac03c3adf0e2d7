"""Scoring of a single candidate bucket against an item."""

import logging

from ..models import INBOX, ClassifiableItem, ScoreResult
from .rules import RuleStore
from .utils import contains_any

logger = logging.getLogger("sortbox.classifier.scorer")

NO_SIGNALS_REASON = "No strong classification signals"


class Scorer:
    """Scores candidate buckets using the rule store's signatures.

    The weights are fixed so that scoring stays deterministic.
    """

    KEYWORD_POINTS = 15  # Per matched keyword
    KEYWORD_MAX = 40
    KNOWN_SENDER_POINTS = 25
    KNOWN_DOMAIN_POINTS = 30
    NAME_MENTIONED_POINTS = 20  # Bucket without a rule, named in the text
    PRIORITY_DIVISOR = 10
    MAX_REASON_KEYWORDS = 3

    # Anything scoring below the floor is replaced by the Inbox fallback
    FALLBACK_FLOOR = 15
    FALLBACK_SCORE = 30

    def __init__(self, rule_store: RuleStore) -> None:
        self._rules = rule_store

    def score(self, bucket_name: str, item: ClassifiableItem) -> ScoreResult:
        """
        Calculate a 0-100 score for one bucket.

        A bucket scoring below FALLBACK_FLOOR is reported as the Inbox
        fallback instead of itself.
        """
        text = item.normalized_text
        score = 0
        reasons: list[str] = []

        rule = self._rules.find_rule(bucket_name)
        if rule:
            matched = [keyword for keyword in rule.keywords if keyword in text]
            if matched:
                score += min(self.KEYWORD_MAX, len(matched) * self.KEYWORD_POINTS)
                reasons.append(f"Keywords: {', '.join(matched[: self.MAX_REASON_KEYWORDS])}")

            if contains_any(item.sender_address, rule.known_senders):
                score += self.KNOWN_SENDER_POINTS
                reasons.append("Known sender")

            if contains_any(item.sender_domain, rule.known_domains):
                score += self.KNOWN_DOMAIN_POINTS
                reasons.append("Known domain")

            score += rule.priority // self.PRIORITY_DIVISOR
            default_reason = "General classification"
        else:
            if bucket_name.lower() in text:
                score += self.NAME_MENTIONED_POINTS
                reasons.append("Folder name mentioned")
            default_reason = NO_SIGNALS_REASON

        score = max(0, min(100, score))

        if score < self.FALLBACK_FLOOR:
            logger.debug(
                "Bucket '%s' scored %d, below floor %d; using %s fallback",
                bucket_name,
                score,
                self.FALLBACK_FLOOR,
                INBOX,
                extra={"bucket": bucket_name, "score": score, "floor": self.FALLBACK_FLOOR},
            )
            return ScoreResult(INBOX, self.FALLBACK_SCORE, NO_SIGNALS_REASON)

        reason = "; ".join(reasons) if reasons else default_reason
        logger.debug(
            "Bucket '%s' scored %d (%s)",
            bucket_name,
            score,
            reason,
            extra={"bucket": bucket_name, "score": score, "has_rule": rule is not None},
        )
        return ScoreResult(bucket_name, score, reason)
