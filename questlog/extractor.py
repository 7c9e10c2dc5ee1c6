"""Entry extractor — runs one line through the pattern registry."""

import logging
from dataclasses import dataclass, field

from questlog.models import LogRecord, ParseIssue
from questlog.patterns import DEFAULT_REGISTRY, PatternRegistry

logger = logging.getLogger(__name__)


@dataclass
class ExtractorStats:
    lines_seen: int = 0
    records_extracted: int = 0
    lines_skipped: int = 0
    parse_issues: int = 0

    def merge(self, other: "ExtractorStats") -> None:
        self.lines_seen += other.lines_seen
        self.records_extracted += other.records_extracted
        self.lines_skipped += other.lines_skipped
        self.parse_issues += other.parse_issues


@dataclass(frozen=True)
class ExtractionResult:
    record: LogRecord | None
    issues: tuple[ParseIssue, ...] = field(default_factory=tuple)


class EntryExtractor:
    """Applies an ordered PatternRegistry to single lines.

    A pattern whose shape matches but whose fields do not parse counts as no
    match; the next pattern is tried. Any other exception propagates.
    """

    def __init__(self, registry: PatternRegistry = DEFAULT_REGISTRY):
        self.registry = registry
        self.stats = ExtractorStats()

    def try_extract(self, line: str, source_file: str = "") -> ExtractionResult:
        """Return the first matching record together with any parse issues hit on the way."""
        self.stats.lines_seen += 1
        issues: list[ParseIssue] = []

        for pattern in self.registry:
            try:
                record = pattern.parse(line, source_file)
            except ValueError as e:
                issue = ParseIssue(pattern=pattern.name, line=line, reason=str(e))
                issues.append(issue)
                self.stats.parse_issues += 1
                logger.debug("Pattern %s rejected line in %s: %s", pattern.name, source_file, e)
                continue
            if record is not None:
                self.stats.records_extracted += 1
                return ExtractionResult(record=record, issues=tuple(issues))

        self.stats.lines_skipped += 1
        return ExtractionResult(record=None, issues=tuple(issues))

    def extract(self, line: str, source_file: str = "") -> LogRecord | None:
        """Return at most one record for the line, or None if nothing matched."""
        return self.try_extract(line, source_file).record

    def reset_stats(self) -> ExtractorStats:
        """Return the counters collected so far and start fresh ones."""
        stats, self.stats = self.stats, ExtractorStats()
        return stats


_default_extractor = EntryExtractor()


def extract(line: str, source_file: str = "") -> LogRecord | None:
    """Module-level shortcut over the default registry."""
    return _default_extractor.extract(line, source_file)
