"""Batch progress exposed as a stream of named events."""

from __future__ import annotations

import json
import logging
import queue
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator, Mapping

from adpack.core.errors import AdpackError

if TYPE_CHECKING:
    from adpack.core.engine import BatchOptimizer

log = logging.getLogger(__name__)

PROGRESS = "progress"
COMPLETE = "complete"
ERROR = "error"


@dataclass(frozen=True, slots=True)
class BatchEvent:
    """One event of a batch stream; ``complete`` and ``error`` are terminal."""

    name: str
    payload: dict[str, Any]

    @property
    def terminal(self) -> bool:
        return self.name in (COMPLETE, ERROR)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.name, **self.payload}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def stream_batch(
    optimizer: BatchOptimizer,
    root: Path | str,
    kind: str,
    options: Mapping[str, Any] | None = None,
    cancel: threading.Event | None = None,
) -> Iterator[BatchEvent]:
    """Run a batch on a worker thread and yield its events in order.

    Yields any number of ``progress`` events followed by exactly one
    ``complete`` or ``error`` event. Closing the iterator early cancels the
    batch cooperatively and waits for the files already started.
    """
    events: queue.Queue[BatchEvent] = queue.Queue()
    cancel = cancel or threading.Event()

    def _work() -> None:
        try:
            result = optimizer.run_batch(
                root,
                kind,
                options,
                on_progress=lambda p: events.put(BatchEvent(PROGRESS, p.to_dict())),
                cancel=cancel,
            )
        except AdpackError as e:
            events.put(BatchEvent(ERROR, {"error": str(e)}))
        except Exception as e:
            log.exception("Batch '%s' crashed", kind)
            events.put(BatchEvent(ERROR, {"error": f"Batch crashed: {e}"}))
        else:
            events.put(BatchEvent(COMPLETE, {"results": result.to_dict()}))

    worker = threading.Thread(target=_work, name=f"adpack-batch-{kind}", daemon=True)
    worker.start()

    finished = False
    try:
        while not finished:
            event = events.get()
            finished = event.terminal
            yield event
    finally:
        if not finished:
            cancel.set()
        worker.join()
