"""Phrase extraction: turns a message into its candidate evidence set.

A message yields:
1. Every run of 1..max_phrase_length consecutive words (split on the
   word-boundary pattern), joined by single spaces, if at most 256 bytes
2. Each of those phrases again with trailing '!'/'?' stripped one at a
   time ("buy!!" -> "buy!!", "buy!", "buy")
3. Every token between non-word characters, catching words glued together
   by punctuation ("free-money" -> "free", "money")

Everything is lower-cased and deduplicated in first-seen order, so the
output is deterministic for a given message.

Splitting uses the `regex` library with a timeout, since messages come
from untrusted senders and the split patterns are user-configurable.

Usage:
    from phrasespam.classifier.phrases import PhraseExtractor, extract_phrases

    extractor = PhraseExtractor(max_phrase_length=3)
    phrases = extractor.extract("Buy now!!")

    # Or use convenience function with default settings
    phrases = extract_phrases("Buy now!!")
"""

from __future__ import annotations

import regex

from phrasespam.core.errors import MalformedInputError
from phrasespam.core.logging import get_logger
from phrasespam.db.models import MAX_PHRASE_BYTES

logger = get_logger(__name__)

DEFAULT_WORD_SPLIT = r"[.:;,]*\s+"
DEFAULT_TRAILING = r"[!?]$"
DEFAULT_MAX_PHRASE_LENGTH = 3

# Regex timeout in seconds for every split/search on message text
REGEX_TIMEOUT = 1.0

NON_WORD_PATTERN = regex.compile(r"\W+")


class PhraseExtractor:
    """Extracts deduplicated candidate phrases from message text.

    Attributes:
        word_split: Compiled pattern separating words
        trailing: Compiled pattern matching a strippable trailing character
        max_phrase_length: Longest word n-gram produced
        regex_timeout: Seconds allowed per regex operation
    """

    def __init__(
        self,
        word_split: str = DEFAULT_WORD_SPLIT,
        trailing: str = DEFAULT_TRAILING,
        max_phrase_length: int = DEFAULT_MAX_PHRASE_LENGTH,
        regex_timeout: float = REGEX_TIMEOUT,
    ):
        """Initialize the extractor.

        Args:
            word_split: Pattern separating words
            trailing: Pattern matching trailing characters to strip
            max_phrase_length: Longest word n-gram to produce (at least 1)
            regex_timeout: Seconds allowed per regex operation
        """
        if max_phrase_length < 1:
            raise ValueError(f"max_phrase_length must be at least 1, got {max_phrase_length}")
        self.word_split = regex.compile(word_split)
        self.trailing = regex.compile(trailing)
        self.max_phrase_length = max_phrase_length
        self.regex_timeout = regex_timeout

    def extract(self, message: str) -> list[str]:
        """Extract the candidate phrases of a message.

        Args:
            message: Raw message text

        Returns:
            Unique phrases in first-seen order (empty for an empty message)

        Raises:
            MalformedInputError: If splitting the message hits the regex timeout
        """
        text = message.lower()
        if not text:
            return []

        try:
            words = [w for w in self.word_split.split(text, timeout=self.regex_timeout) if w]
            phrases: list[str] = []
            for n in range(1, self.max_phrase_length + 1):
                for start in range(len(words) - n + 1):
                    phrase = " ".join(words[start : start + n])
                    self._add_with_trimmed(phrase, phrases)

            tokens = NON_WORD_PATTERN.split(text, timeout=self.regex_timeout)
            phrases.extend(t for t in tokens if t)
        except TimeoutError as e:
            logger.warning("Regex timeout during phrase extraction", message_length=len(text))
            raise MalformedInputError(
                f"Phrase extraction timed out after {self.regex_timeout}s on a "
                f"{len(text)}-character message. Check extraction.word_split and "
                "extraction.trailing for catastrophic backtracking."
            ) from e

        return list(dict.fromkeys(phrases))

    def _add_with_trimmed(self, phrase: str, phrases: list[str]) -> None:
        """Append a phrase and its trailing-stripped variants."""
        if _fits(phrase):
            phrases.append(phrase)
        while len(phrase) > 1:
            match = self.trailing.search(phrase, timeout=self.regex_timeout)
            if match is None or match.start() >= len(phrase):
                break
            phrase = phrase[: match.start()]
            if not phrase:
                break
            if _fits(phrase):
                phrases.append(phrase)


def _fits(phrase: str) -> bool:
    return len(phrase.encode("utf-8")) <= MAX_PHRASE_BYTES


def extract_phrases(
    message: str,
    max_phrase_length: int = DEFAULT_MAX_PHRASE_LENGTH,
) -> list[str]:
    """Convenience function to extract phrases with default patterns.

    Args:
        message: Raw message text
        max_phrase_length: Longest word n-gram to produce

    Returns:
        Unique phrases in first-seen order
    """
    return PhraseExtractor(max_phrase_length=max_phrase_length).extract(message)
