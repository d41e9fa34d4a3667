"""Structured JSON logger for ingestion, editing and reporting runs."""
from __future__ import annotations

import json
import sys
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any, Dict, Iterator, Optional

__all__ = ["JsonLogger", "get_logger", "log_event", "timed_event", "new_run_id"]


def new_run_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S%f")


@dataclass
class _Sink:
    stream: IO[str]
    file_handle: Optional[IO[str]] = None
    closed: bool = False

    def write(self, line: str) -> None:
        if self.closed:
            return
        self.stream.write(line + "\n")
        self.stream.flush()
        if self.file_handle is not None:
            self.file_handle.write(line + "\n")
            self.file_handle.flush()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self.file_handle is not None:
            self.file_handle.close()
            self.file_handle = None


class JsonLogger:
    """Emit newline-delimited JSON events.

    Every event carries the ``run_id`` plus any context added through
    :meth:`bind`. Bound loggers share the parent's stream and log file, so
    closing any of them closes the run.
    """

    def __init__(
        self,
        run_id: Optional[str] = None,
        stream: Optional[IO[str]] = None,
        *,
        log_file_path: str | Path | None = None,
    ):
        self.run_id = run_id or new_run_id()
        self.context: Dict[str, Any] = {"run_id": self.run_id}
        self._sink = _Sink(stream=stream or sys.stdout)
        if log_file_path:
            self.attach_file(log_file_path)

    def attach_file(self, raw_path: str | Path) -> Path:
        """Also append every event to ``raw_path``; parent folders are created."""

        path = Path(raw_path).expanduser().resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        if self._sink.file_handle is not None:
            self._sink.file_handle.close()
        self._sink.file_handle = open(path, "a", encoding="utf-8")
        return path

    def bind(self, **kwargs: Any) -> JsonLogger:
        child = JsonLogger.__new__(JsonLogger)
        child.run_id = self.run_id
        child.context = {**self.context, **kwargs}
        child._sink = self._sink
        return child

    @property
    def closed(self) -> bool:
        return self._sink.closed

    def info(self, *, phase: str, status: str = "ok", message: str = "", **fields: Any) -> None:
        event = {**self.context, "phase": phase, "status": status, "message": message, **fields}
        event.setdefault("ts", datetime.now(timezone.utc).isoformat())
        self._sink.write(json.dumps(event, default=str, ensure_ascii=False))

    def error(self, *, phase: str, message: str, **fields: Any) -> None:
        self.info(phase=phase, status="error", message=message, **fields)

    def close(self) -> None:
        self._sink.close()


def get_logger(
    run_id: Optional[str] = None,
    stream: Optional[IO[str]] = None,
    *,
    log_file_path: str | Path | None = None,
) -> JsonLogger:
    return JsonLogger(run_id=run_id, stream=stream, log_file_path=log_file_path)


def log_event(*, logger: JsonLogger, phase: str, status: str = "ok", message: str = "", **extras: Any) -> None:
    logger.info(phase=phase, status=status, message=message, **extras)


@contextmanager
def timed_event(*, logger: JsonLogger, phase: str, message: str = "", **fields: Any) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    except Exception as exc:
        duration = int((time.perf_counter() - start) * 1000)
        logger.error(
            phase=phase,
            message=f"{message} failed: {exc}",
            duration_ms=duration,
            extras={"exception": repr(exc)},
            **fields,
        )
        raise
    duration = int((time.perf_counter() - start) * 1000)
    logger.info(phase=phase, status="ok", message=message, duration_ms=duration, **fields)
