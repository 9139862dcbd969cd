"""Feed Classifier Data Models."""

from enum import Enum


class FeedType(str, Enum):
    """Feed labels used on feed records."""
    STARTER = "Inicial"        # Growth boxes, first two weeks
    GROWER = "Crescimento"     # Growth boxes, weeks 2-4
    LAYING = "Postura"         # Producers, breeders, and growth boxes from week 5
    FATTENING = "Engorda"      # Males


# Classification vocabulary, matched as lowercase substrings
MALES_TOKENS = ("macho",)
LAYING_TOKENS = ("produtora", "reprodutora")
GROWTH_TOKENS = ("crescimento",)

# Growth-box age thresholds, in whole weeks
STARTER_MAX_WEEKS = 2
GROWER_MAX_WEEKS = 5

# Batch phase thresholds, in whole days
CARICOTO_MAX_DAYS = 21
CRESCIMENTO_MAX_DAYS = 42
