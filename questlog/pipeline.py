"""Ingestion pipeline — scan files line by line, merge records, build per-file metadata.

Files are processed strictly in the order given. A failure inside one file
(unreadable, undecodable, or an exception raised while scanning) is turned
into a "Failed to process <file>: <message>" error and the batch moves on;
records from the failed file are dropped.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable

from questlog.extractor import EntryExtractor, ExtractorStats
from questlog.models import FileMetadata, RecordBundle
from questlog.reader import LogFile

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 1000

ProgressCallback = Callable[[int, int], None]


class CancelToken:
    """Cooperative cancellation flag, checked every PROGRESS_EVERY lines."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class IngestionResult:
    records: RecordBundle = field(default_factory=RecordBundle)
    file_metadata: list[FileMetadata] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    cancelled: bool = False
    files_processed: int = 0
    stats: ExtractorStats = field(default_factory=ExtractorStats)


def format_error_message(file_name: str, error: BaseException) -> str:
    return f"Failed to process {file_name}: {error}"


def calculate_progress(current: int, total: int) -> int:
    """Integer percentage, rounded half up. 0 when total is 0."""
    if total == 0:
        return 0
    return int(current * 100 / total + 0.5)


def parse_log_text(
    text: str,
    file_name: str,
    on_progress: ProgressCallback | None = None,
    extractor: EntryExtractor | None = None,
    cancel_token: CancelToken | None = None,
) -> RecordBundle | None:
    """Extract every record from one text blob.

    The progress callback fires at line 0 and every PROGRESS_EVERY lines after
    with (line_index, total_lines). Returns None when *cancel_token* is set at
    one of those boundaries.
    """
    extractor = extractor or EntryExtractor()
    lines = text.split("\n")
    total = len(lines)
    bundle = RecordBundle()

    for i, line in enumerate(lines):
        if i % PROGRESS_EVERY == 0:
            if on_progress is not None:
                on_progress(i, total)
            if cancel_token is not None and cancel_token.cancelled:
                return None

        record = extractor.extract(line.rstrip("\r"), file_name)
        if record is not None:
            bundle.add(record)

    return bundle


def file_metadata_for(file_name: str, bundle: RecordBundle) -> FileMetadata | None:
    """Time range over all six record categories; None when the file produced nothing."""
    timestamps = [r.timestamp for r in bundle.all_records()]
    if not timestamps:
        return None
    return FileMetadata(
        file_name=file_name,
        start_time=min(timestamps),
        end_time=max(timestamps),
        record_count=len(timestamps),
    )


def ingest(
    files: Iterable[LogFile],
    on_progress: ProgressCallback | None = None,
    extractor: EntryExtractor | None = None,
    cancel_token: CancelToken | None = None,
) -> IngestionResult:
    """Process *files* sequentially and merge their records in input order."""
    extractor = extractor or EntryExtractor()
    result = IngestionResult()

    for log_file in files:
        if cancel_token is not None and cancel_token.cancelled:
            result.cancelled = True
            break

        logger.info("Processing: %s", log_file.name)
        try:
            text = log_file.read_text()
            bundle = parse_log_text(text, log_file.name, on_progress, extractor, cancel_token)
        except Exception as e:
            message = format_error_message(log_file.name, e)
            logger.error(message)
            result.errors.append(message)
            continue

        if bundle is None:
            logger.warning("Ingestion cancelled while scanning %s", log_file.name)
            result.cancelled = True
            break

        metadata = file_metadata_for(log_file.name, bundle)
        if metadata is not None:
            result.file_metadata.append(metadata)

        result.records.extend(bundle)
        result.files_processed += 1
        logger.info("  -> %s: %d records", log_file.name, bundle.total())

    result.stats = extractor.reset_stats()
    return result
