"""Loading and saving classifier state between runs."""

import logging

from . import db
from .classifier import Classifier, FeedbackStore, RuleStore
from .config import Config

logger = logging.getLogger("sortbox.state")


def load_classifier(config: Config) -> Classifier:
    """
    Build a classifier from persisted state.

    Stored rules win over the configured custom rules, which win over the
    defaults. Stored feedback is loaded afterwards.
    """
    db.init_db()

    stored_rules = db.get_rules()
    if stored_rules:
        if config.rules_file:
            logger.warning(
                "Using stored rules; %s is ignored until `sortbox reset`",
                config.rules_file,
                extra={"rules_file": config.rules_file},
            )
        rule_store = RuleStore(stored_rules)
    else:
        rule_store = RuleStore(config.load_custom_rules())

    feedback_store = FeedbackStore()
    records = db.get_feedback()
    feedback_store.import_records(records)

    logger.debug(
        "Loaded %d rules and %d feedback records",
        len(rule_store),
        len(records),
        extra={
            "rules": len(rule_store),
            "feedback": len(records),
            "stored_rules": bool(stored_rules),
        },
    )
    return Classifier(rule_store, feedback_store)


def save_state(classifier: Classifier) -> None:
    """Persist the classifier's rules and feedback."""
    db.init_db()
    rules = classifier.get_rules()
    records = classifier.get_feedback()
    db.save_rules(rules)
    db.save_feedback(records)
    logger.debug(
        "Saved %d rules and %d feedback records",
        len(rules),
        len(records),
        extra={"rules": len(rules), "feedback": len(records)},
    )
