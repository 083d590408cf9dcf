"""Full-corpus processing.

This package provides:
- Paged exporter streaming the phrase table through a bounded queue
- Dump report writer for the exported rows and summary statistics
"""

from phrasespam.engine.exporter import (
    ExportResult,
    ExtremesTracker,
    PagedExporter,
    PhraseGroup,
)
from phrasespam.engine.report import DumpReport, format_row

__all__ = [
    # Exporter
    "ExportResult",
    "ExtremesTracker",
    "PagedExporter",
    "PhraseGroup",
    # Report
    "DumpReport",
    "format_row",
]
