"""
Debounced persistence for per-canvas annotation lists

Every change reschedules a single pending write; a gesture end flushes it
immediately. Only the latest snapshot is ever written.
"""
import logging
import threading
from typing import Any, Callable, Hashable, Optional

from app.config import SAVE_DEBOUNCE_SECONDS

logger = logging.getLogger(__name__)

SaveFn = Callable[[Hashable, Any], None]
TimerFactory = Callable[[float, Callable[[], None]], Any]


class SaveScheduler:
    """
    Pending-write slot with a restartable timer

    The slot holds one (key, snapshot) pair. Scheduling a different key
    while a write is pending flushes the pending one first, so switching
    canvases never loses a change.
    """

    def __init__(
        self,
        save: SaveFn,
        delay: float = SAVE_DEBOUNCE_SECONDS,
        timer_factory: Optional[TimerFactory] = None,
    ):
        """
        Initialize scheduler

        Args:
            save: Called as save(key, snapshot) to persist
            delay: Debounce window in seconds
            timer_factory: Builds a started-on-demand timer with
                start()/cancel() (default: threading.Timer)
        """
        self._save = save
        self.delay = delay
        self._timer_factory = timer_factory or threading.Timer
        self._lock = threading.RLock()
        self._timer = None
        self._pending_key: Optional[Hashable] = None
        self._pending_snapshot: Any = None
        self._has_pending = False

    @property
    def has_pending(self) -> bool:
        return self._has_pending

    def schedule(self, key: Hashable, snapshot: Any) -> None:
        """Replace the pending snapshot and restart the debounce timer"""
        with self._lock:
            if self._has_pending and key != self._pending_key:
                self.flush()
            self._cancel_timer()
            self._pending_key = key
            self._pending_snapshot = snapshot
            self._has_pending = True
            self._timer = self._timer_factory(self.delay, self._flush_from_timer)
            if hasattr(self._timer, "daemon"):
                self._timer.daemon = True
            self._timer.start()

    def flush(self) -> bool:
        """
        Write the pending snapshot now

        If the save raises, the snapshot stays pending and the error propagates.

        Returns:
            True if something was written
        """
        with self._lock:
            self._cancel_timer()
            if not self._has_pending:
                return False
            key, snapshot = self._pending_key, self._pending_snapshot
            self._clear()
            logger.debug(f"Saving annotations for {key!r}")
            try:
                self._save(key, snapshot)
            except Exception:
                # Keep the snapshot for the next flush unless a newer one arrived
                if not self._has_pending:
                    self._pending_key = key
                    self._pending_snapshot = snapshot
                    self._has_pending = True
                raise
            return True

    def _flush_from_timer(self) -> None:
        try:
            self.flush()
        except Exception:
            logger.exception("Debounced save failed; keeping the change pending")

    def cancel(self) -> None:
        """Drop the pending snapshot without writing it"""
        with self._lock:
            self._cancel_timer()
            self._clear()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _clear(self) -> None:
        self._pending_key = None
        self._pending_snapshot = None
        self._has_pending = False
