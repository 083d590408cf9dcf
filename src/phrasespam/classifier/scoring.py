"""Per-phrase spam probability and its combination into a message score.

A phrase seen in at least MIN_OCCURRENCES learned messages contributes

    bp = min(1, spam / nb),  gp = min(1, good / ng),  p = bp / (bp + gp)

clamped to [0.01, 0.99] so no single phrase can force certainty. The most
extreme probabilities (furthest from 0.5) are combined with the
product-odds formula

    combined = prod(p) / (prod(p) + prod(1 - p))
"""

import math
from collections.abc import Iterable

# Phrases with fewer combined observations are ignored
MIN_OCCURRENCES = 5

MIN_PROBABILITY = 0.01
MAX_PROBABILITY = 0.99

# Score returned when no phrase carries evidence
NEUTRAL_SCORE = 0.5

DEFAULT_MAX_SIGNIFICANT = 15


def is_significant(spam_count: int, good_count: int) -> bool:
    """Return True if a phrase has enough observations to be scored."""
    return spam_count + good_count >= MIN_OCCURRENCES


def phrase_probability(
    spam_count: int,
    good_count: int,
    spam_messages: int,
    good_messages: int,
) -> float | None:
    """Compute the clamped spam probability of one phrase.

    Args:
        spam_count: Spam messages containing the phrase
        good_count: Good messages containing the phrase
        spam_messages: Total spam messages learned (nb)
        good_messages: Total good messages learned (ng)

    Returns:
        Probability in [0.01, 0.99], or None if the phrase is insignificant
        or either message total is zero
    """
    if not is_significant(spam_count, good_count):
        return None
    if spam_messages < 1 or good_messages < 1:
        return None

    bp = min(1.0, spam_count / spam_messages)
    gp = min(1.0, good_count / good_messages)
    p = bp / (bp + gp)
    return min(MAX_PROBABILITY, max(MIN_PROBABILITY, p))


def select_significant(
    probabilities: Iterable[float], max_significant: int | None
) -> list[float]:
    """Keep the probabilities furthest from 0.5.

    Args:
        probabilities: Per-phrase probabilities
        max_significant: How many to keep, or None to keep all

    Returns:
        Probabilities ordered from most to least extreme
    """
    ordered = sorted(probabilities, key=lambda p: abs(p - 0.5), reverse=True)
    if max_significant is None:
        return ordered
    return ordered[:max_significant]


def combine_probabilities(
    probabilities: Iterable[float],
    max_significant: int | None = DEFAULT_MAX_SIGNIFICANT,
) -> float:
    """Combine per-phrase probabilities into one message score.

    The product-odds formula is evaluated as 1 / (1 + exp(sum(log(1-p)) -
    sum(log(p)))), which is the same value but does not underflow when
    many phrases are kept.

    Args:
        probabilities: Per-phrase probabilities, each in (0, 1)
        max_significant: How many of the most extreme to use (None = all)

    Returns:
        Combined probability in [0, 1]; 0.5 when there is no evidence
    """
    selected = select_significant(probabilities, max_significant)
    if not selected:
        return NEUTRAL_SCORE

    log_odds_against = math.fsum(math.log1p(-p) for p in selected) - math.fsum(
        math.log(p) for p in selected
    )
    if log_odds_against > 700:
        return 0.0
    return 1.0 / (1.0 + math.exp(log_odds_against))
