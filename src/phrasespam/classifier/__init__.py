"""Message classification components.

This package provides:
- Phrase extraction turning message text into candidate phrases
- Per-phrase probability and product-odds combination
- SpamClassifier orchestrating learning and scoring against the store
"""

from phrasespam.classifier.bayes import PhraseDetail, SpamClassifier, StoreStats
from phrasespam.classifier.phrases import PhraseExtractor, extract_phrases
from phrasespam.classifier.scoring import (
    MIN_OCCURRENCES,
    combine_probabilities,
    phrase_probability,
)

__all__ = [
    # Classifier
    "PhraseDetail",
    "SpamClassifier",
    "StoreStats",
    # Phrase extraction
    "PhraseExtractor",
    "extract_phrases",
    # Scoring
    "MIN_OCCURRENCES",
    "combine_probabilities",
    "phrase_probability",
]
