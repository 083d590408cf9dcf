"""Tests for SpamClassifier.

Tests learning, scoring, the insufficient-data guard, phrase details,
statistics, dump, and progress handler wiring.
"""

import io
from typing import Any

import pytest

from phrasespam.classifier import PhraseDetail, PhraseExtractor, SpamClassifier, StoreStats
from phrasespam.config_schema import AppConfig
from phrasespam.core.errors import InsufficientDataError
from phrasespam.core.progress import ProgressEvent
from phrasespam.db.store import StatStore
from phrasespam.engine.exporter import PagedExporter
from tests.conftest import RecordingSleep


@pytest.fixture
def classifier(store: StatStore, fast_sleep: RecordingSleep) -> SpamClassifier:
    """Create a classifier whose dumps never wait on real timers."""
    return SpamClassifier(
        store,
        exporter=PagedExporter(store, page_size=2, initial_interval=0.01, sleep=fast_sleep),
    )


async def _train(classifier: SpamClassifier, times: int = 5) -> None:
    """Learn one spam and one good message enough times to be significant."""
    for _ in range(times):
        await classifier.learn("cheap pills", is_spam=True)
        await classifier.learn("team meeting", is_spam=False)


class TestLearn:
    """Tests for SpamClassifier.learn()."""

    @pytest.mark.asyncio
    async def test_learn_records_phrases_and_message(self, classifier: SpamClassifier) -> None:
        """Test that learning counts every extracted phrase once."""
        recorded = await classifier.learn("Buy now!!", is_spam=True)

        stats = await classifier.stats()
        assert recorded == len(PhraseExtractor().extract("Buy now!!"))
        assert stats == StoreStats(
            phrase_count=recorded, total_messages=1, spam_messages=1, good_messages=0
        )

    @pytest.mark.asyncio
    async def test_learning_twice_doubles_weight(
        self, classifier: SpamClassifier, store: StatStore
    ) -> None:
        """Test that the same message learned twice counts twice."""
        await classifier.learn("free money", is_spam=True)
        await classifier.learn("free money", is_spam=True)

        record = await store.get_phrase("free money")
        assert record is not None
        assert record.spam_count == 2

    @pytest.mark.asyncio
    async def test_empty_message_still_counts(self, classifier: SpamClassifier) -> None:
        """Test that an empty message increments the totals only."""
        assert await classifier.learn("", is_spam=False) == 0

        stats = await classifier.stats()
        assert stats.good_messages == 1
        assert stats.phrase_count == 0


class TestScore:
    """Tests for SpamClassifier.score()."""

    @pytest.mark.asyncio
    async def test_score_before_learning_raises(self, classifier: SpamClassifier) -> None:
        """Test that scoring an empty store fails with InsufficientDataError."""
        with pytest.raises(InsufficientDataError) as exc_info:
            await classifier.score("anything")

        assert exc_info.value.spam_messages == 0
        assert exc_info.value.good_messages == 0

    @pytest.mark.asyncio
    async def test_score_with_one_class_raises(self, classifier: SpamClassifier) -> None:
        """Test that good messages are required as well as spam."""
        await classifier.learn("spam only", is_spam=True)

        with pytest.raises(InsufficientDataError, match="sample too small"):
            await classifier.score("spam only")

    @pytest.mark.asyncio
    async def test_cancelling_evidence_stays_bounded(self, classifier: SpamClassifier) -> None:
        """Test that one spam and one good copy of a message scores in (0, 1)."""
        await classifier.learn("buy now", is_spam=True)
        await classifier.learn("buy now", is_spam=False)

        score = await classifier.score("buy now")

        assert 0.0 < score < 1.0

    @pytest.mark.asyncio
    async def test_no_significant_phrases_is_neutral(self, classifier: SpamClassifier) -> None:
        """Test that unseen phrases give 0.5."""
        await _train(classifier)

        assert await classifier.score("completely unrelated words") == 0.5

    @pytest.mark.asyncio
    async def test_spam_and_good_messages_separate(self, classifier: SpamClassifier) -> None:
        """Test that trained spam scores high and trained good scores low."""
        await _train(classifier)

        assert await classifier.score("cheap pills") > 0.99
        assert await classifier.score("team meeting") < 0.01

    @pytest.mark.asyncio
    async def test_below_threshold_phrases_are_ignored(self, classifier: SpamClassifier) -> None:
        """Test that four observations are not enough to count."""
        await _train(classifier, times=4)

        assert await classifier.score("cheap pills") == 0.5

    @pytest.mark.asyncio
    async def test_max_significant_limits_evidence(self, store: StatStore) -> None:
        """Test that only the most extreme phrases are combined."""
        limited = SpamClassifier(store, max_significant=1)
        await _train(limited)

        # Spam and good evidence are equally extreme, so one phrase decides
        score = await limited.score("cheap team")

        assert score == pytest.approx(0.99)

    @pytest.mark.asyncio
    async def test_invalid_max_significant(self, store: StatStore) -> None:
        """Test constructor validation."""
        with pytest.raises(ValueError, match="max_significant"):
            SpamClassifier(store, max_significant=0)


class TestPhraseDetails:
    """Tests for SpamClassifier.phrase_details()."""

    @pytest.mark.asyncio
    async def test_details_cover_every_phrase(self, classifier: SpamClassifier) -> None:
        """Test counts and scores for known and unknown phrases."""
        await _train(classifier)

        details = await classifier.phrase_details("Cheap hello")

        assert details == [
            PhraseDetail("cheap", 5, 0, 0.99),
            PhraseDetail("hello", 0, 0, None),
            PhraseDetail("cheap hello", 0, 0, None),
        ]

    @pytest.mark.asyncio
    async def test_details_on_empty_store(self, classifier: SpamClassifier) -> None:
        """Test that details never raise InsufficientDataError."""
        details = await classifier.phrase_details("hello")

        assert details == [PhraseDetail("hello", 0, 0, None)]


class TestDump:
    """Tests for SpamClassifier.dump()."""

    @pytest.mark.asyncio
    async def test_dump_writes_rows_and_summary(self, classifier: SpamClassifier) -> None:
        """Test that every phrase and the extremes are written."""
        await _train(classifier)
        sink = io.StringIO()

        result = await classifier.dump(sink)

        lines = sink.getvalue().splitlines()
        assert lines[0].startswith("Phrase")
        assert result.rows == 6
        assert result.pages == 3
        assert lines[2].startswith("cheap ")
        assert "Phrases: 6" in lines
        assert any(
            line.startswith("Spammiest") and line.endswith("cheap, cheap pills, pills")
            for line in lines
        )
        assert any(
            line.startswith("Cleanest") and line.endswith("meeting, team, team meeting")
            for line in lines
        )

    @pytest.mark.asyncio
    async def test_dump_empty_store(self, classifier: SpamClassifier) -> None:
        """Test that an empty store dumps headers and zero totals."""
        sink = io.StringIO()

        result = await classifier.dump(sink)

        assert result.rows == 0
        assert "Phrases: 0" in sink.getvalue()
        assert "Spammiest" not in sink.getvalue()


class TestProgress:
    """Tests for progress handler registration."""

    @pytest.mark.asyncio
    async def test_registered_handler_receives_events(self, classifier: SpamClassifier) -> None:
        """Test that on_progress applies to every call."""
        events: list[ProgressEvent] = []
        classifier.on_progress(events.append)

        await classifier.learn("hello world", is_spam=True)

        assert events
        assert all(e.kind == "phrase" for e in events)
        assert events[-1].current == events[-1].total

    @pytest.mark.asyncio
    async def test_call_handler_overrides_registered(self, classifier: SpamClassifier) -> None:
        """Test that a per-call handler takes precedence."""
        registered: list[ProgressEvent] = []
        per_call: list[ProgressEvent] = []
        classifier.on_progress(registered.append)

        await classifier.learn("hello", is_spam=True, progress=per_call.append)

        assert registered == []
        assert [e.detail for e in per_call] == ["hello"]

    @pytest.mark.asyncio
    async def test_score_reports_each_phrase(self, classifier: SpamClassifier) -> None:
        """Test that scoring reports one event per extracted phrase."""
        await _train(classifier, times=1)
        events: list[Any] = []

        await classifier.score("cheap pills", progress=events.append)

        assert [e.detail for e in events] == ["cheap", "pills", "cheap pills"]

    @pytest.mark.asyncio
    async def test_handler_can_be_removed(self, classifier: SpamClassifier) -> None:
        """Test that on_progress(None) stops notifications."""
        events: list[ProgressEvent] = []
        classifier.on_progress(events.append)
        classifier.on_progress(None)

        await classifier.learn("hello", is_spam=True)

        assert events == []


class TestFromConfig:
    """Tests for SpamClassifier.from_config()."""

    @pytest.mark.asyncio
    async def test_settings_are_applied(self, store: StatStore, sample_config: AppConfig) -> None:
        """Test that extraction, scoring and export settings are used."""
        classifier = SpamClassifier.from_config(sample_config, store)

        assert classifier.max_significant == 15
        assert classifier.extractor.max_phrase_length == 3

    @pytest.mark.asyncio
    async def test_unlimited_significant_phrases(self, store: StatStore) -> None:
        """Test that 'unlimited' maps to no limit."""
        config = AppConfig(scoring={"max_significant": "unlimited"})

        classifier = SpamClassifier.from_config(config, store)

        assert classifier.max_significant is None
