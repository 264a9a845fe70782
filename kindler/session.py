"""Discovery session for Kindler.

Owns the current Phase and moves it through
AwaitingDevice -> DeviceFound -> Ready. Device polling and library scans
run on worker threads; their results and the user's intents go through
one queue and are applied by a single consumer, one message at a time.

Every background task is tagged with the generation that started it.
A Refresh bumps the generation, so results of older tasks are dropped.
Device removal while Ready is not detected; only Refresh starts over.
"""

from __future__ import annotations

import queue
from threading import Condition, Event, Thread
from typing import Callable, Optional

from .device import DeviceMonitor
from .logging_config import get_logger
from .models import (
    AwaitingDevice,
    DeviceFound,
    DevicePresent,
    Intent,
    Library,
    Message,
    Phase,
    Ready,
    Refresh,
    ScanCompleted,
    Select,
)

logger = get_logger(__name__)

Runner = Callable[[Callable[[], None], str], None]
Listener = Callable[[Phase], None]


def thread_runner(target: Callable[[], None], name: str) -> None:
    """Run `target` on a daemon thread."""
    Thread(target=target, name=name, daemon=True).start()


class DiscoverySession:
    """State machine tracking the device and its library."""

    def __init__(
        self,
        monitor: DeviceMonitor,
        scan: Callable[[], Library],
        poll_interval: float = 2.0,
        runner: Runner = thread_runner,
    ):
        self.monitor = monitor
        self.scan = scan
        self.poll_interval = poll_interval
        self._runner = runner

        self._phase: Phase = AwaitingDevice()
        # Phase seen by wait_for; updated once listeners have run
        self._published: Phase = self._phase
        self._generation = 0
        self._cancel = Event()
        self._messages: queue.Queue = queue.Queue()
        self._listeners: list[Listener] = []
        self._changed = Condition()
        self._stop_event = Event()
        self._loop: Optional[Thread] = None
        self._polling = False

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def generation(self) -> int:
        return self._generation

    def subscribe(self, listener: Listener) -> None:
        """Call `listener(phase)` after every phase change."""
        self._listeners.append(listener)

    def submit(self, intent: Intent) -> None:
        """Queue an intent from the presentation layer. Thread-safe."""
        self._messages.put(intent)

    # --- lifecycle ---

    def begin(self) -> None:
        """Start polling for the device without starting the message loop.

        After stop() this starts a fresh cycle from AwaitingDevice.
        """
        if not self._polling:
            self._polling = True
            if not isinstance(self._phase, AwaitingDevice):
                self._set_phase(AwaitingDevice())
            self._start_polling()

    def start(self) -> None:
        """Start polling and run the message loop on a daemon thread."""
        self.begin()
        if self._loop is None:
            self._stop_event.clear()
            self._loop = Thread(target=self._run, name="KindlerSession", daemon=True)
            self._loop.start()

    def stop(self, timeout: float = 5.0) -> None:
        """Cancel polling and stop the message loop.

        Tasks still in flight belong to a retired generation and are
        dropped if the session is started again.
        """
        self._cancel.set()
        self._stop_event.set()
        if self._loop is not None:
            self._loop.join(timeout)
            self._loop = None
        self._generation += 1
        self._cancel = Event()
        self._polling = False

    def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                message = self._messages.get(timeout=0.5)
            except queue.Empty:
                continue
            self._handle(message)

    def process_pending(self) -> int:
        """Apply every queued message on the calling thread; return how many."""
        handled = 0
        while True:
            try:
                message = self._messages.get_nowait()
            except queue.Empty:
                return handled
            self._handle(message)
            handled += 1

    def wait_for(self, predicate: Callable[[Phase], bool], timeout: Optional[float] = None) -> bool:
        """Block until `predicate(phase)` holds. Returns False on timeout."""
        with self._changed:
            return self._changed.wait_for(lambda: predicate(self._published), timeout)

    # --- background tasks ---

    def _dispatch(self, name: str, work: Callable[[], Optional[Message]]) -> None:
        def task() -> None:
            try:
                result = work()
            except Exception as exc:
                logger.error(f"Error in {name}: {exc}")
                return
            if result is not None:
                self._messages.put(result)

        self._runner(task, name)

    def _start_polling(self) -> None:
        generation, cancel = self._generation, self._cancel

        def poll() -> Optional[Message]:
            if self.monitor.poll_until_present(self.poll_interval, cancel):
                return DevicePresent(generation)
            return None

        self._dispatch(f"poll-{generation}", poll)

    def _start_scan(self) -> None:
        generation = self._generation

        def scan() -> Message:
            try:
                library = self.scan()
            except Exception as exc:
                logger.error(f"Scan failed, showing an empty library: {exc}")
                library = Library()
            return ScanCompleted(generation, library)

        self._dispatch(f"scan-{generation}", scan)

    # --- transitions ---

    def _set_phase(self, phase: Phase) -> None:
        self._phase = phase

        logger.info(f"Phase -> {type(phase).__name__}")
        for listener in list(self._listeners):
            try:
                listener(phase)
            except Exception as exc:
                logger.error(f"Phase listener {listener!r} failed: {exc}")

        with self._changed:
            self._published = phase
            self._changed.notify_all()

    def _handle(self, message: Message) -> None:
        phase = self._phase

        if isinstance(message, (DevicePresent, ScanCompleted)):
            if message.generation != self._generation:
                logger.debug(
                    f"Dropping stale {type(message).__name__} "
                    f"(generation {message.generation}, current {self._generation})"
                )
                return

        if isinstance(message, DevicePresent):
            if isinstance(phase, AwaitingDevice):
                self._set_phase(DeviceFound())
                self._start_scan()

        elif isinstance(message, ScanCompleted):
            if isinstance(phase, DeviceFound):
                self._set_phase(Ready(message.library))

        elif isinstance(message, Refresh):
            if isinstance(phase, Ready):
                self._cancel.set()
                self._generation += 1
                self._cancel = Event()
                self._set_phase(AwaitingDevice())
                self._start_polling()

        elif isinstance(message, Select):
            if isinstance(phase, Ready):
                if phase.library.contains(message.record):
                    self._set_phase(Ready(phase.library, message.record))
                else:
                    logger.debug(f"Ignoring selection outside current library: {message.record.title}")
