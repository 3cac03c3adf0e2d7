"""Classification engine that ranks candidate folders and learns from feedback."""

import logging
from collections.abc import Iterable, Sequence

from ..errors import NoCandidatesError
from ..models import (
    Alternative,
    ClassifiableItem,
    ClassificationResult,
    FeedbackOutcome,
    FeedbackRecord,
    Rule,
    ScoreResult,
)
from .feedback import FeedbackStore
from .rules import RuleStore
from .scorer import Scorer

logger = logging.getLogger("sortbox.classifier.engine")


class Classifier:
    """
    Orchestrates folder classification:
    1. Score every candidate bucket against the active rules
    2. Rank by score (ties keep candidate order)
    3. Boost the bucket a similar past correction points to
    4. Return the best bucket plus up to two alternatives

    Feedback is stored and used to derive rules for buckets that have none.
    """

    TRAINING_BOOST = 30
    MAX_ALTERNATIVES = 2

    def __init__(
        self,
        rule_store: RuleStore | None = None,
        feedback_store: FeedbackStore | None = None,
    ) -> None:
        self.rules = rule_store if rule_store is not None else RuleStore()
        self.feedback = feedback_store if feedback_store is not None else FeedbackStore()
        self.scorer = Scorer(self.rules)

    def classify(
        self,
        item: ClassifiableItem,
        candidate_buckets: Sequence[str],
        item_id: str | None = None,
    ) -> ClassificationResult:
        """Suggest the best bucket for an item among the candidates."""
        if not candidate_buckets:
            raise NoCandidatesError(details={"item_id": item_id} if item_id else {})

        results = self._rank(self.scorer.score(bucket, item) for bucket in candidate_buckets)

        match = self.feedback.find_similar(item)
        if match and match.correct_bucket in candidate_buckets:
            boosted = self._apply_training_boost(results, match.correct_bucket)
            if boosted:
                results = self._rank(results)
            else:
                logger.debug(
                    "Trained bucket '%s' fell back to Inbox, no boost applied",
                    match.correct_bucket,
                    extra={"item_id": item_id, "bucket": match.correct_bucket},
                )

        best = results[0]
        result = ClassificationResult(
            suggested_bucket=best.bucket_name,
            confidence=best.confidence,
            reason=best.reason,
            alternatives=[
                Alternative(bucket=entry.bucket_name, confidence=entry.confidence)
                for entry in results[1 : 1 + self.MAX_ALTERNATIVES]
            ],
        )

        logger.info(
            "Classified %s -> %s (%.0f%%)",
            item_id or item.sender_address or "item",
            result.suggested_bucket,
            result.confidence * 100,
            extra={
                "item_id": item_id,
                "bucket": result.suggested_bucket,
                "confidence": result.confidence,
                "candidates": len(candidate_buckets),
                "training_match": match.correct_bucket if match else None,
            },
        )
        return result

    def _rank(self, results: Iterable[ScoreResult]) -> list[ScoreResult]:
        # sorted() is stable, so ties keep candidate order
        return sorted(results, key=lambda entry: entry.raw_score, reverse=True)

    def _apply_training_boost(self, results: list[ScoreResult], bucket: str) -> bool:
        """Raise the score of the bucket's entry. Returns False if it has none."""
        for entry in results:
            if entry.bucket_name == bucket:
                before = entry.raw_score
                entry.raw_score = min(100, entry.raw_score + self.TRAINING_BOOST)
                logger.debug(
                    "Training boost for '%s': %d -> %d",
                    bucket,
                    before,
                    entry.raw_score,
                    extra={"bucket": bucket, "before": before, "after": entry.raw_score},
                )
                return True
        return False

    def record_feedback(
        self,
        item: ClassifiableItem,
        correct_bucket: str,
        item_id: str | None = None,
    ) -> FeedbackOutcome:
        """Store a user correction and derive rules from the accumulated feedback."""
        replaced = self.feedback.add(item, correct_bucket)
        created = self.rules.derive_rules_from(self.feedback.group_by_bucket())

        logger.info(
            "%s feedback for %s -> %s",
            "Updated" if replaced else "Recorded",
            item_id or item.sender_address or "item",
            correct_bucket,
            extra={
                "item_id": item_id,
                "bucket": correct_bucket,
                "replaced": replaced,
                "created_rules": [rule.bucket_name for rule in created],
            },
        )
        message = "Feedback updated" if replaced else "Feedback recorded"
        return FeedbackOutcome(
            success=True,
            message=self._feedback_message(message, created),
            replaced=replaced,
            created_rules=[rule.bucket_name for rule in created],
        )

    def import_feedback(self, records: Iterable[FeedbackRecord]) -> FeedbackOutcome:
        """Import exported feedback records and derive rules from them."""
        added = self.feedback.import_records(records)
        created = self.rules.derive_rules_from(self.feedback.group_by_bucket())

        logger.info(
            "Imported %d feedback records",
            added,
            extra={"added": added, "created_rules": [rule.bucket_name for rule in created]},
        )
        return FeedbackOutcome(
            success=True,
            message=self._feedback_message(f"Imported {added} feedback records", created),
            created_rules=[rule.bucket_name for rule in created],
        )

    @staticmethod
    def _feedback_message(message: str, created: list[Rule]) -> str:
        if not created:
            return message
        names = ", ".join(f"'{rule.bucket_name}'" for rule in created)
        return f"{message}; created rule for {names}"

    def get_rules(self) -> list[Rule]:
        """Get the active rules (read-only snapshot)."""
        return self.rules.get_rules()

    def get_feedback(self) -> list[FeedbackRecord]:
        """Get all stored feedback (read-only snapshot)."""
        return self.feedback.all_records()
