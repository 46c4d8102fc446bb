"""
Diagnostics sinks for resolution failures.

The orchestrator only returns failures; the caller decides where they go.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Union

from post_kind_engine.core.reference_resolver.models import ResolutionFailure

logger = logging.getLogger(__name__)


class DiagnosticsSink:
    """Append-only destination for failure records."""

    def record(self, failure: ResolutionFailure) -> None:
        raise NotImplementedError


class LoggingSink(DiagnosticsSink):
    """Writes one WARNING log line per failure."""

    def __init__(self, target: logging.Logger = logger):
        self.target = target

    def record(self, failure: ResolutionFailure) -> None:
        self.target.warning(
            "Unresolved reference %s -> %s [%s] %s",
            failure.location,
            failure.url,
            failure.reason.value,
            failure.message,
        )


class JsonlDiagnosticsSink(DiagnosticsSink):
    """Appends one JSON object per failure to a file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def record(self, failure: ResolutionFailure) -> None:
        event = {
            "event": "resolution_failed",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "payload": failure.to_dict(),
        }
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as out:
                out.write(json.dumps(event, ensure_ascii=False) + "\n")


class MemorySink(DiagnosticsSink):
    """Keeps failures in a list."""

    def __init__(self):
        self.failures: List[ResolutionFailure] = []

    def record(self, failure: ResolutionFailure) -> None:
        self.failures.append(failure)
