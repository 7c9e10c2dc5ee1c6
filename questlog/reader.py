"""Log file acquisition — glob expansion, lazy file handles, and decoding."""

import glob
import math
import os
from dataclasses import dataclass

VALID_EXTENSIONS = (".log", ".txt")


@dataclass(frozen=True)
class LogFile:
    """A named log source. Content is either held in memory or read from *path* on demand."""
    name: str
    content: str | bytes | None = None
    path: str | None = None

    def read_text(self) -> str:
        """Return the decoded text. Raises OSError or UnicodeDecodeError."""
        data = self.content
        if data is None:
            if self.path is None:
                raise ValueError(f"{self.name} has neither content nor a path")
            with open(self.path, "rb") as f:
                data = f.read()
        return decode_content(data)


def decode_content(data: str | bytes) -> str:
    """Strict UTF-8 decode (BOM tolerated). Text passes through unchanged."""
    if isinstance(data, str):
        return data
    return data.decode("utf-8-sig")


def read_log_file(path: str) -> LogFile:
    """Return a lazy LogFile for *path*; the read happens when the pipeline asks for text."""
    return LogFile(name=os.path.basename(path), path=path)


def load_files(paths: list[str]) -> list[LogFile]:
    return [read_log_file(p) for p in paths]


def expand_paths(raw_paths: list[str]) -> list[str]:
    """Expand globs, deduplicate, and validate that files exist.

    Raises FileNotFoundError if a non-glob path doesn't exist.
    Raises FileNotFoundError if expansion produces zero files.
    """
    expanded = []
    seen = set()

    for raw in raw_paths:
        if any(c in raw for c in ("*", "?", "[")):
            for m in sorted(glob.glob(raw)):
                if m not in seen and os.path.isfile(m):
                    seen.add(m)
                    expanded.append(m)
        else:
            if not os.path.isfile(raw):
                raise FileNotFoundError(f"File not found: {raw}")
            if raw not in seen:
                seen.add(raw)
                expanded.append(raw)

    if not expanded:
        raise FileNotFoundError("No log files found matching the given paths")

    return expanded


def is_valid_log_file(name: str) -> bool:
    """True for .log and .txt files (case-insensitive)."""
    return name.lower().endswith(VALID_EXTENSIONS)


def format_bytes(size: int, decimals: int = 2) -> str:
    """Human-readable size: 1536 → '1.5 KB'."""
    if size == 0:
        return "0 Bytes"
    k = 1024
    units = ["Bytes", "KB", "MB", "GB"]
    i = min(int(math.floor(math.log(size) / math.log(k))), len(units) - 1)
    value = round(size / k ** i, max(decimals, 0))
    return f"{value:g} {units[i]}"
