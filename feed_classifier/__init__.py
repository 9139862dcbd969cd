"""Feed Classifier - feed type and batch phase decisions.

Usage:
    from feed_classifier import classify

    feed_type = classify(group.classification, batch.birth_date, False, "Inicial")
"""

from feed_classifier.models import FeedType
from feed_classifier.classifier import classify, classify_phase, match_classification

__all__ = [
    "FeedType",
    "classify",
    "classify_phase",
    "match_classification",
]
