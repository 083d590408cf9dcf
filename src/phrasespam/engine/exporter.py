"""Streams the whole phrase table in bounded pages.

A producer task reads pages with StatStore.page_query and puts them on a
bounded asyncio.Queue. The consumer (the caller) polls that queue instead
of blocking on it, adapting its polling interval:

- queue had pages  -> drain everything queued, shrink interval (x 2/3)
- queue was empty  -> grow interval (x 1.5)

The interval stays within [min_interval, max_interval]. The consumer stops
once the producer is finished and the queue is empty. Pages arrive in
offset order, so the extremes tracked during export depend only on the
stored data, never on polling timing.

Peak memory is bounded by 2 * queue_size + 1 pages.

Usage:
    exporter = PagedExporter(store, page_size=10000)
    result = await exporter.export(print, totals=await store.get_totals())
    print(result.rows, result.spammiest)
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import aclosing
from dataclasses import dataclass, field

from phrasespam.classifier.scoring import phrase_probability
from phrasespam.core.logging import get_logger
from phrasespam.core.progress import ProgressEvent, ProgressHandler, notify
from phrasespam.db.store import PhraseRecord, StatStore, Totals

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 10000
DEFAULT_QUEUE_SIZE = 4
DEFAULT_INITIAL_INTERVAL = 0.5  # seconds
DEFAULT_MIN_INTERVAL = 0.01
DEFAULT_MAX_INTERVAL = 5.0
SHRINK_FACTOR = 2 / 3
GROW_FACTOR = 1.5


@dataclass
class PhraseGroup:
    """Phrases sharing one probability and occurrence count."""

    probability: float
    occurrences: int
    phrases: list[str] = field(default_factory=list)


@dataclass
class ExportResult:
    """Outcome of a full export.

    Attributes:
        rows: Phrase records consumed
        pages: Non-empty pages consumed
        spammiest: Highest-probability phrase group (None without evidence)
        cleanest: Lowest-probability phrase group (None without evidence)
    """

    rows: int = 0
    pages: int = 0
    spammiest: PhraseGroup | None = None
    cleanest: PhraseGroup | None = None


class ExtremesTracker:
    """Tracks the spammiest and cleanest phrase groups seen so far.

    On equal probability the cleanest group prefers the lower occurrence
    count and the spammiest the higher one. Phrases join an existing group
    only when both probability and occurrence count are equal.
    """

    def __init__(self) -> None:
        self.spammiest: PhraseGroup | None = None
        self.cleanest: PhraseGroup | None = None

    def observe(self, phrase: str, probability: float, occurrences: int) -> None:
        spammiest = self.spammiest
        if (
            spammiest is None
            or probability > spammiest.probability
            or (probability == spammiest.probability and occurrences > spammiest.occurrences)
        ):
            self.spammiest = PhraseGroup(probability, occurrences, [phrase])
        elif probability == spammiest.probability and occurrences == spammiest.occurrences:
            spammiest.phrases.append(phrase)

        cleanest = self.cleanest
        if (
            cleanest is None
            or probability < cleanest.probability
            or (probability == cleanest.probability and occurrences < cleanest.occurrences)
        ):
            self.cleanest = PhraseGroup(probability, occurrences, [phrase])
        elif probability == cleanest.probability and occurrences == cleanest.occurrences:
            cleanest.phrases.append(phrase)


class PagedExporter:
    """Reads every phrase through a background producer and a polling consumer.

    Attributes:
        store: StatStore to read pages from
        page_size: Rows requested per page
        queue_size: Pages buffered between producer and consumer
    """

    def __init__(
        self,
        store: StatStore,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        initial_interval: float = DEFAULT_INITIAL_INTERVAL,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        max_interval: float = DEFAULT_MAX_INTERVAL,
        shrink: float = SHRINK_FACTOR,
        grow: float = GROW_FACTOR,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the exporter.

        Args:
            store: StatStore to read from
            page_size: Rows per page (at least 1)
            queue_size: Maximum pages waiting in the queue (at least 1)
            initial_interval: First polling delay in seconds
            min_interval: Lower bound for the polling delay
            max_interval: Upper bound for the polling delay
            shrink: Interval multiplier after pages were consumed (below 1)
            grow: Interval multiplier after an empty poll (above 1)
            sleep: Awaitable sleep function (replaceable in tests)
        """
        if page_size < 1:
            raise ValueError(f"page_size must be at least 1, got {page_size}")
        if queue_size < 1:
            raise ValueError(f"queue_size must be at least 1, got {queue_size}")
        if not 0 < min_interval <= max_interval:
            raise ValueError(
                f"Polling bounds must satisfy 0 < min_interval <= max_interval, "
                f"got {min_interval} and {max_interval}"
            )
        if not 0 < shrink < 1 or grow <= 1:
            raise ValueError(
                f"Backoff factors must satisfy 0 < shrink < 1 < grow, got {shrink} and {grow}"
            )
        self.store = store
        self.page_size = page_size
        self.queue_size = queue_size
        self.initial_interval = min(max(initial_interval, min_interval), max_interval)
        self.min_interval = min_interval
        self.max_interval = max_interval
        self.shrink = shrink
        self.grow = grow
        self._sleep = sleep

    async def _produce(
        self,
        queue: asyncio.Queue[list[PhraseRecord]],
        progress: ProgressHandler | None,
    ) -> int:
        """Fetch pages in offset order until a short page arrives."""
        offset = 0
        rows = 0
        while True:
            page = await self.store.page_query(offset, self.page_size, progress=progress)
            if page:
                await queue.put(page)
            rows += len(page)
            offset += self.page_size
            if len(page) < self.page_size:
                logger.debug("Export producer finished", rows=rows)
                return rows

    async def pages(
        self, progress: ProgressHandler | None = None
    ) -> AsyncIterator[list[PhraseRecord]]:
        """Yield every page of the phrase table in phrase order.

        Producer errors are raised here once the pages queued before the
        failure have been yielded. Closing the generator early cancels the
        producer.

        Args:
            progress: Optional handler for retry and page notifications

        Yields:
            Non-empty lists of PhraseRecord, each at most page_size long
        """
        queue: asyncio.Queue[list[PhraseRecord]] = asyncio.Queue(maxsize=self.queue_size)
        producer = asyncio.create_task(self._produce(queue, progress))
        interval = self.initial_interval
        consumed = 0
        try:
            while True:
                ready: list[list[PhraseRecord]] = []
                while True:
                    try:
                        ready.append(queue.get_nowait())
                    except asyncio.QueueEmpty:
                        break

                if ready:
                    for page in ready:
                        consumed += 1
                        notify(progress, ProgressEvent("page", consumed, None, str(len(page))))
                        yield page
                    interval = max(self.min_interval, interval * self.shrink)
                elif producer.done():
                    break
                else:
                    interval = min(self.max_interval, interval * self.grow)

                await self._sleep(interval)

            rows = await producer
            logger.debug("Export consumer finished", pages=consumed, rows=rows)
        finally:
            if not producer.done():
                producer.cancel()
                try:
                    await producer
                except asyncio.CancelledError:
                    pass
            elif not producer.cancelled():
                # Retrieve a failure the consumer never reached
                producer.exception()

    async def export(
        self,
        on_row: Callable[[PhraseRecord], None] | None = None,
        *,
        totals: Totals,
        progress: ProgressHandler | None = None,
    ) -> ExportResult:
        """Consume every phrase, tracking the spammiest and cleanest groups.

        Args:
            on_row: Optional callback invoked for each record in phrase order
            totals: Message totals used for per-phrase probabilities
            progress: Optional handler for retry and page notifications

        Returns:
            ExportResult with row/page counts and the extreme groups
        """
        result = ExportResult()
        tracker = ExtremesTracker()

        async with aclosing(self.pages(progress=progress)) as pages:
            async for page in pages:
                result.pages += 1
                for record in page:
                    result.rows += 1
                    if on_row is not None:
                        on_row(record)
                    probability = phrase_probability(
                        record.spam_count,
                        record.good_count,
                        totals.spam_messages,
                        totals.good_messages,
                    )
                    if probability is not None:
                        tracker.observe(record.phrase, probability, record.occurrences)

        result.spammiest = tracker.spammiest
        result.cleanest = tracker.cleanest
        logger.info("Export complete", rows=result.rows, pages=result.pages)
        return result
