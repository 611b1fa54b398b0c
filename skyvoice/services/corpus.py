"""Labeled intent corpus on disk.

Layout::

    <corpus_dir>/
        flight_booking/
            flight_booking_1.csv
        flight_cancellation/
            ...

Each CSV has a header row with ``id,text,intent,category,priority``.
Rows missing ``text`` or ``intent`` are skipped.
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Any, Iterator

from skyvoice.services.intent_matcher import IntentMatcher

logger = logging.getLogger(__name__)


class CorpusNotFoundError(FileNotFoundError):
    """Raised when a corpus directory or file does not exist."""


class CorpusPathError(ValueError):
    """Raised when a folder or file name points outside the corpus directory."""


def resolve_within(corpus_dir: Path, *parts: str) -> Path:
    """Join *parts* onto *corpus_dir*, rejecting anything that escapes it."""
    root = corpus_dir.resolve()
    path = root.joinpath(*parts).resolve()
    if path == root or not path.is_relative_to(root):
        raise CorpusPathError(f"Path escapes the intent corpus: {Path(*parts)}")
    return path


def read_examples(path: Path) -> list[dict[str, str]]:
    """Parse one CSV file into example dicts."""
    examples: list[dict[str, str]] = []
    with path.open(newline="", encoding="utf-8") as fh:
        for row in csv.DictReader(fh):
            text = (row.get("text") or "").replace('"', "").strip()
            intent = (row.get("intent") or "").strip()
            if not text or not intent:
                continue
            examples.append(
                {
                    "id": (row.get("id") or f"{path.stem}-{len(examples)}").strip(),
                    "text": text,
                    "intent": intent,
                    "category": (row.get("category") or "").strip(),
                    "priority": (row.get("priority") or "").strip(),
                }
            )
    return examples


def iter_corpus_files(corpus_dir: Path, intent_folder: str | None = None) -> Iterator[tuple[str, Path]]:
    """Yield ``(intent_folder, csv_path)`` pairs in a stable order."""
    if not corpus_dir.is_dir():
        raise CorpusNotFoundError(f"Intent corpus directory not found: {corpus_dir}")
    if intent_folder:
        folder = resolve_within(corpus_dir, intent_folder)
        if not folder.is_dir():
            raise CorpusNotFoundError(f"Intent folder not found: {folder}")
        folders = [folder]
    else:
        folders = sorted(corpus_dir.iterdir())
    for folder in folders:
        if not folder.is_dir():
            continue
        for csv_path in sorted(folder.glob("*.csv")):
            yield folder.name, csv_path


def load_corpus(
    matcher: IntentMatcher,
    corpus_dir: str | Path,
    *,
    intent_folder: str | None = None,
    file_name: str | None = None,
) -> dict[str, Any]:
    """Index every example under *corpus_dir* (or one folder / one file).

    Returns a summary with per-file progress and the final index stats.
    """
    corpus_dir = Path(corpus_dir)
    if file_name:
        if not intent_folder:
            raise ValueError("file_name requires intent_folder")
        path = resolve_within(corpus_dir, intent_folder, file_name)
        if not path.is_file():
            raise CorpusNotFoundError(f"Intent corpus file not found: {path}")
        files = [(intent_folder, path)]
    else:
        files = list(iter_corpus_files(corpus_dir, intent_folder))

    progress: list[dict[str, Any]] = []
    processed = succeeded = 0
    for folder, path in files:
        examples = read_examples(path)
        if not examples:
            continue
        statuses = matcher.add_batch(examples)
        ok = sum(1 for s in statuses if s["status"] == "success")
        processed += len(statuses)
        succeeded += ok
        progress.append(
            {"intent_folder": folder, "file": path.name, "processed": len(statuses), "succeeded": ok}
        )
        logger.info("Loaded %s/%s: %d/%d examples", folder, path.name, ok, len(statuses))

    return {
        "success": True,
        "total_processed": processed,
        "total_succeeded": succeeded,
        "files": progress,
        "stats": matcher.stats(),
    }
