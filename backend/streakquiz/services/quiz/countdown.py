"""TimeAttack countdown.

One background task per started countdown. Every start or cancel bumps a
generation counter; a worker whose generation is no longer current stops
without touching the session, so a countdown can never fire into a
question (or a session) it was not started for.
"""

import logging
import threading
from typing import Callable, Optional

log = logging.getLogger(__name__)


class Countdown:
    def __init__(self, spawn: Callable, sleep: Callable[[float], None],
                 on_tick: Callable[[int], Optional[int]], label: str = '',
                 heartbeat_sec: int = 0):
        self._spawn = spawn
        self._sleep = sleep
        self._on_tick = on_tick
        self._label = label
        self._heartbeat_sec = heartbeat_sec
        self._generation = 0
        self._running = False
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._running

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return self._running and generation == self._generation

    def start(self, seconds: int) -> int:
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._running = True
        log.info(f"[timer-set] session={self._label} generation={generation} duration={seconds}s")
        self._spawn(self._worker, generation, seconds)
        return generation

    def cancel(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._generation += 1
            self._running = False
        log.info(f"[timer-cancel] session={self._label}")

    def _worker(self, generation: int, seconds: int) -> None:
        elapsed = 0
        while True:
            self._sleep(1)
            elapsed += 1
            if not self.is_current(generation):
                log.info(f"[timer-abort] session={self._label} generation={generation} superseded")
                return
            remaining = self._on_tick(generation)
            if self._heartbeat_sec and elapsed % self._heartbeat_sec == 0:
                log.info(f"[timer-heartbeat] session={self._label} remaining={remaining}s of {seconds}s")
            if not remaining:
                with self._lock:
                    if generation == self._generation:
                        self._running = False
                return
