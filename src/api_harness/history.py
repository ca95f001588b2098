"""Test history recording.

A recorder is append-only: ``record`` adds an entry stamped with the time
of recording and nothing in this package edits or deletes earlier entries.
Reads come back newest first. Writes are serialised with a lock so
concurrent runs against different (or the same) APIs never interleave.
"""

import logging
import threading
from pathlib import Path
from typing import Protocol

from api_harness.models import AiAnalysis, HistoryEntry, ResolvedRequest, TestResult

logger = logging.getLogger(__name__)


class HistoryRecorder(Protocol):
    def record(
        self,
        api_id: str,
        request: ResolvedRequest,
        result: TestResult,
        endpoint_id: str | None = None,
        ai_analysis: AiAnalysis | None = None,
    ) -> HistoryEntry: ...

    def entries_by_api(self, api_id: str) -> list[HistoryEntry]: ...

    def list_by_api(self, api_id: str) -> list[TestResult]: ...


def _newest_first(entries: list[HistoryEntry]) -> list[HistoryEntry]:
    # entries are in insertion order; reversing first keeps the later of two
    # equal timestamps in front after the stable sort
    return sorted(reversed(entries), key=lambda e: e.recorded_at, reverse=True)


class InMemoryHistoryRecorder:
    """Keeps history in process memory. Useful for tests and one-off runs."""

    def __init__(self):
        self._entries: dict[str, list[HistoryEntry]] = {}
        self._lock = threading.Lock()

    def record(self, api_id, request, result, endpoint_id=None, ai_analysis=None) -> HistoryEntry:
        entry = HistoryEntry(
            api_id=api_id,
            endpoint_id=endpoint_id,
            request=request,
            result=result,
            ai_analysis=ai_analysis,
        )
        with self._lock:
            self._entries.setdefault(api_id, []).append(entry)
        return entry

    def entries_by_api(self, api_id: str) -> list[HistoryEntry]:
        with self._lock:
            entries = list(self._entries.get(api_id, []))
        return _newest_first(entries)

    def list_by_api(self, api_id: str) -> list[TestResult]:
        return [e.result for e in self.entries_by_api(api_id)]


class JsonlHistoryRecorder:
    """Appends history to ``<directory>/<api_id>.jsonl``, one entry per line."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self._lock = threading.Lock()

    def _path(self, api_id: str) -> Path:
        safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in api_id)
        return self.directory / f"{safe}.jsonl"

    def record(self, api_id, request, result, endpoint_id=None, ai_analysis=None) -> HistoryEntry:
        entry = HistoryEntry(
            api_id=api_id,
            endpoint_id=endpoint_id,
            request=request,
            result=result,
            ai_analysis=ai_analysis,
        )
        line = entry.model_dump_json() + "\n"
        with self._lock:
            self.directory.mkdir(parents=True, exist_ok=True)
            with self._path(api_id).open("a", encoding="utf-8") as f:
                f.write(line)
        logger.debug("Recorded history entry %s for API %s", entry.id, api_id)
        return entry

    def entries_by_api(self, api_id: str) -> list[HistoryEntry]:
        path = self._path(api_id)
        if not path.exists():
            return []
        with self._lock:
            lines = path.read_text(encoding="utf-8").splitlines()
        entries = [HistoryEntry.model_validate_json(line) for line in lines if line.strip()]
        return _newest_first(entries)

    def list_by_api(self, api_id: str) -> list[TestResult]:
        return [e.result for e in self.entries_by_api(api_id)]
