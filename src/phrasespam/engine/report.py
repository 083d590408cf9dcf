"""Plain-text report of the full phrase table.

Layout:

    Phrase                                               # Spam               # OK
    ------                                               ------               ----
    <phrase, 40 chars>  <spam, 18 wide>  <good, 18 wide>
    ...

    Total messages:          <spam>          <good>
    Phrases: <count>
    Spammiest (p=0.9900, 12 occurrences): viagra, cheap viagra
    Cleanest (p=0.0100, 7 occurrences): meeting

The summary lines for the extremes appear only when some phrase was
significant enough to be scored.
"""

from typing import Protocol

from phrasespam.db.store import PhraseRecord, Totals
from phrasespam.engine.exporter import ExportResult, PhraseGroup

HEADER_LINES = (
    "Phrase                                               # Spam               # OK",
    "------                                               ------               ----",
)

PHRASE_COLUMN_WIDTH = 40


class TextSink(Protocol):
    """Anything with a write(str) method (files, sys.stdout, io.StringIO)."""

    def write(self, text: str, /) -> object: ...


def format_row(label: str, spam: int, good: int) -> str:
    """Format one report row: label clipped to 40 characters, two counters."""
    return f"{label[:PHRASE_COLUMN_WIDTH]:<{PHRASE_COLUMN_WIDTH}} {spam:>18d} {good:>18d}"


def format_group(title: str, group: PhraseGroup) -> str:
    """Format a spammiest/cleanest summary line."""
    return (
        f"{title} (p={group.probability:.4f}, {group.occurrences} occurrences): "
        + ", ".join(group.phrases)
    )


class DumpReport:
    """Writes the dump report to a sink as rows arrive.

    Usage:
        report = DumpReport(sys.stdout)
        report.write_header()
        result = await exporter.export(report.write_record, totals=totals)
        report.write_summary(totals, result)
    """

    def __init__(self, sink: TextSink):
        self.sink = sink

    def _line(self, text: str = "") -> None:
        self.sink.write(text + "\n")

    def write_header(self) -> None:
        for line in HEADER_LINES:
            self._line(line)

    def write_record(self, record: PhraseRecord) -> None:
        self._line(format_row(record.phrase, record.spam_count, record.good_count))

    def write_summary(self, totals: Totals, result: ExportResult) -> None:
        self._line()
        self._line(format_row("Total messages:", totals.spam_messages, totals.good_messages))
        self._line(f"Phrases: {result.rows}")
        if result.spammiest is not None:
            self._line(format_group("Spammiest", result.spammiest))
        if result.cleanest is not None:
            self._line(format_group("Cleanest", result.cleanest))
