"""D-Bus service for front-end communication.

D-Bus methods use PascalCase per D-Bus convention, and type signatures
like "s" and "(ts)" are D-Bus protocol types, not Python syntax.

Batches run on a worker thread. Their events come back as signals, which
are always emitted from the event loop thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from typing import Any

from dbus_next import BusType
from dbus_next.aio import MessageBus
from dbus_next.service import ServiceInterface, method, signal

from adpack.core.errors import AdpackError
from adpack.core.events import COMPLETE, PROGRESS, BatchEvent
from adpack.core.tracker import Tracker
from adpack.core.workspace import Workspace
from adpack.settings import Settings

log = logging.getLogger(__name__)

_BUS_NAME = "io.github.adpack"
_OBJECT_PATH = "/io/github/adpack"
_INTERFACE = "io.github.adpack.Optimizer"


def _error(exc: Exception | str) -> str:
    return json.dumps({"error": str(exc)})


def _parse_options(options_json: str) -> dict[str, Any]:
    if not options_json:
        return {}
    try:
        options = json.loads(options_json)
    except json.JSONDecodeError as e:
        raise AdpackError(f"Options are not valid JSON: {e}") from e
    if not isinstance(options, dict):
        raise AdpackError("Options must be a JSON object")
    return options


# noinspection PyPep8Naming
class AdpackDBusService(ServiceInterface):
    """D-Bus service interface for adpack."""

    def __init__(self, workspace: Workspace, loop: asyncio.AbstractEventLoop | None = None) -> None:
        super().__init__(_INTERFACE)
        self._workspace = workspace
        self._loop = loop
        self._tracker = Tracker()
        self._batch_lock = threading.Lock()
        self._batch: threading.Thread | None = None
        self._cancel: threading.Event | None = None

    @property
    def busy(self) -> bool:
        return self._batch is not None and self._batch.is_alive()

    @method()
    def Scan(self) -> "s":  # type: ignore[override]
        """Scan the root, returning the report as JSON."""
        try:
            return json.dumps(self._workspace.scan().to_dict())
        except AdpackError as e:
            return _error(e)

    @method()
    def Estimate(self, kind: "s") -> "s":  # type: ignore[override]
        """Estimate savings for a kind without touching files."""
        try:
            return json.dumps(self._workspace.estimate(kind).to_dict())
        except AdpackError as e:
            return _error(e)

    @method()
    def Optimize(self, kind: "s", options_json: "s") -> "s":  # type: ignore[override]
        """Start a batch in the background; progress arrives as signals."""
        try:
            options = _parse_options(options_json)
            self._workspace.registry.require(kind)
        except AdpackError as e:
            return _error(e)
        with self._batch_lock:
            if self.busy:
                return _error("A batch is already running")
            self._cancel = threading.Event()
            self._batch = threading.Thread(
                target=self._run_batch,
                args=(kind, options, self._cancel),
                name=f"adpack-dbus-{kind}",
                daemon=True,
            )
            self._batch.start()
        return json.dumps({"started": True, "kind": kind})

    @method()
    def Cancel(self) -> "b":  # type: ignore[override]
        """Ask the running batch to stop; False when nothing is running."""
        with self._batch_lock:
            if not self.busy or self._cancel is None:
                return False
            self._cancel.set()
            return True

    @method()
    def CompressOne(self, path: "s", options_json: "s") -> "s":  # type: ignore[override]
        """Compress one file under the root."""
        try:
            outcome = self._workspace.compress_one(path, _parse_options(options_json))
        except AdpackError as e:
            return _error(e)
        compressor = self._workspace.registry.for_path(path)
        if compressor is not None:
            self._tracker.record_single(compressor.kind, path, outcome)
        return json.dumps(outcome.to_dict())

    @method()
    def ResizeOne(self, path: "s", width: "i", height: "i") -> "s":  # type: ignore[override]
        """Resize one image; a width or height of 0 keeps the aspect ratio."""
        try:
            outcome = self._workspace.resize_one(path, width=width or None, height=height or None)
        except AdpackError as e:
            return _error(e)
        self._tracker.record_single("image", path, outcome)
        return json.dumps(outcome.to_dict())

    @method()
    def SetRoot(self, path: "s") -> "s":  # type: ignore[override]
        """Switch the asset root and persist it."""
        try:
            root = self._workspace.change_root(path)
        except AdpackError as e:
            return _error(e)
        Settings.instance().set("root", str(root))
        return json.dumps({"root": str(root)})

    @method()
    def GetStats(self, period: "s") -> "s":  # type: ignore[override]
        """Get statistics for a time period."""
        return json.dumps(self._tracker.get_stats(period))

    @signal()
    def BatchProgress(self, current: int, path: str) -> "(ts)":  # type: ignore[override]
        return [current, path]

    @signal()
    def BatchComplete(self, results_json: str) -> "s":  # type: ignore[override]
        return results_json

    @signal()
    def BatchError(self, message: str) -> "s":  # type: ignore[override]
        return message

    def _run_batch(self, kind: str, options: dict[str, Any], cancel: threading.Event) -> None:
        for event in self._workspace.stream_batch(kind, options, cancel=cancel):
            if event.name == COMPLETE:
                self._tracker.record_batch(event.payload["results"], str(self._workspace.session.root))
            self._dispatch(event)

    def _dispatch(self, event: BatchEvent) -> None:
        if self._loop is None:
            self._emit(event)
        else:
            self._loop.call_soon_threadsafe(self._emit, event)

    def _emit(self, event: BatchEvent) -> None:
        if event.name == PROGRESS:
            self.BatchProgress(event.payload["current"], event.payload["file"])
        elif event.name == COMPLETE:
            self.BatchComplete(json.dumps(event.payload["results"]))
        else:
            self.BatchError(event.payload["error"])


async def run_service(root: str | None = None) -> None:
    """Start the D-Bus service."""
    workspace = Workspace.from_settings(Settings.instance(), root=root)
    bus = await MessageBus(bus_type=BusType.SESSION).connect()
    service = AdpackDBusService(workspace, loop=asyncio.get_running_loop())
    bus.export(_OBJECT_PATH, service)
    await bus.request_name(_BUS_NAME)
    log.info("D-Bus service started on %s (root: %s)", _BUS_NAME, workspace.session.root)
    await bus.wait_for_disconnect()


def start_service(root: str | None = None) -> None:
    """Entry point to start the D-Bus service."""
    asyncio.run(run_service(root))
