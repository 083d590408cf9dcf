"""Phrase-based Bayesian spam classifier.

SpamClassifier ties phrase extraction, the phrase store and the scoring
formula together:

- learn(message, is_spam): extract phrases, then count them and the
  message in one store transaction. Learning the same message twice
  doubles its weight.
- score(message): combine the per-phrase probabilities of the message's
  significant phrases into one spam probability.

Usage:
    store = StatStore("data/phrasespam.db")
    await store.initialize()
    classifier = SpamClassifier(store)

    await classifier.learn("Cheap pills, buy now!!", is_spam=True)
    await classifier.learn("Lunch at noon?", is_spam=False)
    probability = await classifier.score("buy cheap pills")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from phrasespam.classifier.phrases import PhraseExtractor
from phrasespam.classifier.scoring import (
    DEFAULT_MAX_SIGNIFICANT,
    combine_probabilities,
    phrase_probability,
)
from phrasespam.core.errors import InsufficientDataError
from phrasespam.core.logging import get_logger
from phrasespam.core.progress import ProgressEvent, ProgressHandler, notify
from phrasespam.db.models import normalize_phrase
from phrasespam.db.store import StatStore

if TYPE_CHECKING:
    from phrasespam.config_schema import AppConfig
    from phrasespam.engine.exporter import ExportResult, PagedExporter
    from phrasespam.engine.report import TextSink

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class StoreStats:
    """Summary counters for a phrase store."""

    phrase_count: int
    total_messages: int
    spam_messages: int
    good_messages: int


@dataclass(frozen=True, slots=True)
class PhraseDetail:
    """Stored counters and per-phrase probability of one extracted phrase.

    Attributes:
        phrase: Extracted phrase
        spam_count: Spam messages containing it (0 if never learned)
        good_count: Good messages containing it (0 if never learned)
        score: Clamped spam probability, or None if the phrase is not
               significant or a message total is still zero
    """

    phrase: str
    spam_count: int
    good_count: int
    score: float | None


class SpamClassifier:
    """Learns and scores messages against a StatStore.

    Attributes:
        store: StatStore holding the phrase counters
        extractor: PhraseExtractor turning messages into phrases
        max_significant: Most extreme phrases combined per score (None = all)
    """

    def __init__(
        self,
        store: StatStore,
        extractor: PhraseExtractor | None = None,
        *,
        max_significant: int | None = DEFAULT_MAX_SIGNIFICANT,
        exporter: PagedExporter | None = None,
    ):
        """Initialize the classifier.

        Args:
            store: Initialized StatStore
            extractor: Phrase extractor (default patterns if None)
            max_significant: Phrases combined per score, None for all
            exporter: Exporter used by dump (default settings if None)
        """
        if max_significant is not None and max_significant < 1:
            raise ValueError(f"max_significant must be at least 1, got {max_significant}")
        self.store = store
        self.extractor = extractor or PhraseExtractor()
        self.max_significant = max_significant
        self._exporter = exporter
        self._progress: ProgressHandler | None = None

    @classmethod
    def from_config(cls, config: AppConfig, store: StatStore) -> SpamClassifier:
        """Build a classifier with extraction, scoring and export settings from config."""
        from phrasespam.engine.exporter import PagedExporter

        extraction = config.extraction
        export = config.export
        return cls(
            store,
            PhraseExtractor(
                word_split=extraction.word_split,
                trailing=extraction.trailing,
                max_phrase_length=extraction.max_phrase_length,
                regex_timeout=extraction.regex_timeout,
            ),
            max_significant=config.scoring.limit,
            exporter=PagedExporter(
                store,
                page_size=export.page_size,
                queue_size=export.queue_size,
                initial_interval=export.initial_interval,
                min_interval=export.min_interval,
                max_interval=export.max_interval,
            ),
        )

    def on_progress(self, handler: ProgressHandler | None) -> None:
        """Register the default progress handler for this classifier.

        A `progress` argument passed to an individual call takes precedence.
        Pass None to remove the handler.
        """
        self._progress = handler

    def _handler(self, progress: ProgressHandler | None) -> ProgressHandler | None:
        return progress if progress is not None else self._progress

    async def learn(
        self, message: str, is_spam: bool, progress: ProgressHandler | None = None
    ) -> int:
        """Learn a message as spam or good.

        Args:
            message: Message text
            is_spam: True if the message is spam
            progress: Optional handler for retry and per-phrase notifications

        Returns:
            Number of phrases recorded
        """
        phrases = self.extractor.extract(message)
        recorded = await self.store.record_message(
            phrases, is_spam, progress=self._handler(progress)
        )
        logger.info("Message learned", phrases=recorded, is_spam=is_spam)
        return recorded

    async def score(self, message: str, progress: ProgressHandler | None = None) -> float:
        """Compute the spam probability of a message.

        Args:
            message: Message text
            progress: Optional handler for retry and per-phrase notifications

        Returns:
            Probability in [0, 1]; 0.5 when no significant phrase is found

        Raises:
            InsufficientDataError: If no spam or no good message was learned yet
        """
        handler = self._handler(progress)
        totals = await self.store.get_totals(progress=handler)
        if totals.spam_messages < 1 or totals.good_messages < 1:
            raise InsufficientDataError(
                "Cannot compute probability: sample too small "
                f"({totals.spam_messages} spam, {totals.good_messages} good messages learned). "
                "Learn at least one spam and one good message first.",
                spam_messages=totals.spam_messages,
                good_messages=totals.good_messages,
            )

        phrases = self.extractor.extract(message)
        records = await self.store.get_phrases(phrases, progress=handler)

        probabilities: list[float] = []
        for index, phrase in enumerate(phrases, start=1):
            notify(handler, ProgressEvent("phrase", index, len(phrases), phrase))
            record = records.get(normalize_phrase(phrase))
            if record is None:
                continue
            p = phrase_probability(
                record.spam_count,
                record.good_count,
                totals.spam_messages,
                totals.good_messages,
            )
            if p is not None:
                probabilities.append(p)

        combined = combine_probabilities(probabilities, self.max_significant)
        logger.debug(
            "Message scored",
            phrases=len(phrases),
            significant=len(probabilities),
            score=combined,
        )
        return combined

    async def stats(self, progress: ProgressHandler | None = None) -> StoreStats:
        """Return phrase and message counts of the store."""
        handler = self._handler(progress)
        totals = await self.store.get_totals(progress=handler)
        phrase_count = await self.store.count_phrases(progress=handler)
        return StoreStats(
            phrase_count=phrase_count,
            total_messages=totals.total_messages,
            spam_messages=totals.spam_messages,
            good_messages=totals.good_messages,
        )

    async def phrase_details(
        self, message: str, progress: ProgressHandler | None = None
    ) -> list[PhraseDetail]:
        """Show the stored evidence for every phrase of a message.

        Args:
            message: Message text
            progress: Optional handler for retry and per-phrase notifications

        Returns:
            One PhraseDetail per extracted phrase, in extraction order
        """
        handler = self._handler(progress)
        totals = await self.store.get_totals(progress=handler)
        phrases = self.extractor.extract(message)
        records = await self.store.get_phrases(phrases, progress=handler)

        details: list[PhraseDetail] = []
        for index, phrase in enumerate(phrases, start=1):
            notify(handler, ProgressEvent("phrase", index, len(phrases), phrase))
            record = records.get(normalize_phrase(phrase))
            spam = record.spam_count if record else 0
            good = record.good_count if record else 0
            details.append(
                PhraseDetail(
                    phrase=phrase,
                    spam_count=spam,
                    good_count=good,
                    score=phrase_probability(
                        spam, good, totals.spam_messages, totals.good_messages
                    ),
                )
            )
        return details

    async def dump(self, sink: TextSink, progress: ProgressHandler | None = None) -> ExportResult:
        """Write every phrase and the summary statistics to a sink.

        Args:
            sink: Object with a write(str) method
            progress: Optional handler for retry and page notifications

        Returns:
            ExportResult of the underlying paged export
        """
        from phrasespam.engine.exporter import PagedExporter
        from phrasespam.engine.report import DumpReport

        handler = self._handler(progress)
        exporter = self._exporter or PagedExporter(self.store)
        totals = await self.store.get_totals(progress=handler)

        report = DumpReport(sink)
        report.write_header()
        result = await exporter.export(report.write_record, totals=totals, progress=handler)
        report.write_summary(totals, result)
        return result
