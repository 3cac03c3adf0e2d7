"""Active folder rules and rule derivation from user feedback."""

import logging
import math
import threading
from collections.abc import Iterable, Mapping, Sequence

from ..models import FeedbackRecord, Rule
from .utils import tokenize

logger = logging.getLogger("sortbox.classifier.rules")


# Default rules shipped with sortbox
DEFAULT_RULES: tuple[Rule, ...] = (
    Rule(
        bucket_name="Finanzen",
        keywords=("rechnung", "invoice", "zahlung", "payment", "beleg", "receipt", "konto", "bank"),
        known_senders=("billing", "invoice", "rechnung", "payments"),
        known_domains=("paypal", "amazon", "stripe", "bank"),
        priority=90,
        source="default",
    ),
    Rule(
        bucket_name="Arbeit",
        keywords=(
            "meeting",
            "projekt",
            "project",
            "deadline",
            "aufgabe",
            "task",
            "bericht",
            "report",
            "kollege",
        ),
        known_domains=("company", "corp", "office"),
        priority=80,
        source="default",
    ),
    Rule(
        bucket_name="Entwicklung",
        keywords=("github", "gitlab", "commit", "pull request", "merge", "bug", "feature", "code"),
        known_senders=("notifications@github.com", "noreply@github.com", "gitlab@"),
        known_domains=("github.com", "gitlab.com", "bitbucket.org"),
        priority=85,
        source="default",
    ),
    Rule(
        bucket_name="Newsletter",
        keywords=("newsletter", "abmelden", "unsubscribe", "update", "neuigkeiten", "digest"),
        known_senders=("newsletter", "news@"),
        known_domains=("mailchimp", "sendgrid", "newsletter"),
        priority=50,
        source="default",
    ),
    Rule(
        bucket_name="Privat",
        keywords=("familie", "freund", "einladung", "urlaub", "geburtstag", "feiern"),
        priority=60,
        source="default",
    ),
    Rule(
        bucket_name="Spam",
        keywords=("gewinn", "gratis", "kostenlos", "limitiert", "aktionscode", "klicken sie hier"),
        priority=95,
        source="default",
    ),
    Rule(
        bucket_name="Reisen",
        keywords=("buchung", "booking", "flug", "flight", "hotel", "reservation", "reise", "trip"),
        known_senders=("reservations", "booking"),
        known_domains=("booking.com", "airbnb", "lufthansa", "airlines"),
        priority=75,
        source="default",
    ),
    Rule(
        bucket_name="Shopping",
        keywords=(
            "bestellung",
            "order",
            "lieferung",
            "delivery",
            "versand",
            "shipping",
            "kauf",
            "purchase",
        ),
        known_senders=("versand", "shipping"),
        known_domains=("amazon", "ebay", "otto", "zalando"),
        priority=70,
        source="default",
    ),
)


class RuleStore:
    """Holds the active rule set, at most one rule per lower-cased bucket name."""

    # Derivation parameters
    MIN_RECORDS_FOR_RULE = 3  # Need at least 3 corrections before inventing a rule
    KEYWORD_RECORD_SHARE = 0.3  # Term must appear in 30% of a bucket's records
    DOMAIN_RECORD_SHARE = 0.2  # Domain must appear in 20% of a bucket's records
    MIN_KEYWORD_LENGTH = 4  # Terms must be longer than this
    MAX_DERIVED_KEYWORDS = 10
    DERIVED_RULE_PRIORITY = 75

    def __init__(self, custom_rules: Sequence[Rule] | None = None) -> None:
        self._lock = threading.Lock()
        self._rules: dict[str, Rule] = {}
        self.initialize(custom_rules)

    def initialize(self, custom_rules: Sequence[Rule] | None = None) -> None:
        """Replace the active rule set with custom rules, or the defaults if None."""
        source = DEFAULT_RULES if custom_rules is None else custom_rules
        rules: dict[str, Rule] = {}
        for rule in source:
            if rule.key in rules:
                logger.warning(
                    "Duplicate rule for bucket '%s', keeping the later one",
                    rule.bucket_name,
                    extra={"bucket": rule.bucket_name},
                )
            rules[rule.key] = rule

        with self._lock:
            self._rules = rules

        logger.info(
            "Initialized %d folder rules (%s)",
            len(rules),
            "defaults" if custom_rules is None else "custom",
            extra={"rule_count": len(rules), "custom": custom_rules is not None},
        )

    def find_rule(self, bucket_name: str) -> Rule | None:
        """Find the rule for a bucket (case-insensitive exact match)."""
        with self._lock:
            return self._rules.get(bucket_name.lower())

    def get_rules(self) -> list[Rule]:
        """Get a snapshot of all active rules."""
        with self._lock:
            return list(self._rules.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._rules)

    def derive_rules_from(self, grouped: Mapping[str, Sequence[FeedbackRecord]]) -> list[Rule]:
        """Create rules for buckets that have enough feedback but no rule yet.

        Existing rules are never replaced. Returns the rules that were created.
        """
        created: list[Rule] = []

        with self._lock:
            for bucket, records in grouped.items():
                if bucket.lower() in self._rules or len(records) < self.MIN_RECORDS_FOR_RULE:
                    continue

                keywords = self._common_keywords(records)
                domains = self._common_domains(records)
                if not keywords and not domains:
                    logger.debug(
                        "No common keywords or domains for bucket '%s', skipping rule",
                        bucket,
                        extra={"bucket": bucket, "record_count": len(records)},
                    )
                    continue

                rule = Rule(
                    bucket_name=bucket,
                    keywords=tuple(keywords),
                    known_domains=tuple(domains),
                    priority=self.DERIVED_RULE_PRIORITY,
                    source="derived",
                )
                self._rules[rule.key] = rule
                created.append(rule)

        for rule in created:
            logger.info(
                "Created new rule for folder '%s' (%d keywords, %d domains)",
                rule.bucket_name,
                len(rule.keywords),
                len(rule.known_domains),
                extra={
                    "bucket": rule.bucket_name,
                    "keywords": list(rule.keywords),
                    "domains": list(rule.known_domains),
                },
            )

        return created

    def _common_keywords(self, records: Sequence[FeedbackRecord]) -> list[str]:
        """Terms shared by enough records, in first-seen order."""
        counts = self._record_counts(
            tokenize(record.item.normalized_text, self.MIN_KEYWORD_LENGTH) for record in records
        )
        threshold = math.ceil(len(records) * self.KEYWORD_RECORD_SHARE)
        common = [term for term, count in counts.items() if count >= threshold]
        return common[: self.MAX_DERIVED_KEYWORDS]

    def _common_domains(self, records: Sequence[FeedbackRecord]) -> list[str]:
        """Sender domains shared by enough records, in first-seen order."""
        counts = self._record_counts(
            [record.item.sender_domain] if record.item.sender_domain else []
            for record in records
        )
        threshold = math.ceil(len(records) * self.DOMAIN_RECORD_SHARE)
        return [domain for domain, count in counts.items() if count >= threshold]

    @staticmethod
    def _record_counts(values_per_record: Iterable[list[str]]) -> dict[str, int]:
        """Count how many records each value appears in."""
        counts: dict[str, int] = {}
        for values in values_per_record:
            for value in dict.fromkeys(values):
                counts[value] = counts.get(value, 0) + 1
        return counts
