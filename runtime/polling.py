"""Periodic fetch loops that apply responses in request order only."""

import logging
import threading
from datetime import datetime, timezone

from runtime.defaults import default_poll_status


def _utc_now():
    return datetime.now(timezone.utc)


class SequencedPoller:
    """
    Poll one resource on a fixed period.

    Each fetch takes a sequence number when it starts. A response is handed to
    `on_result` only when its sequence is newer than the last applied one, so
    a slow response can never overwrite a fresher one. Failures go to
    `on_error`; the loop keeps its period either way.
    """

    def __init__(self, name, fetch_fn, on_result, period_s, *, on_error=None, now_fn=_utc_now):
        self.name = str(name)
        self._fetch_fn = fetch_fn
        self._on_result = on_result
        self._on_error = on_error
        self.period_s = float(period_s)
        self._now_fn = now_fn
        self._lock = threading.Lock()
        self._next_seq = 1
        self._status = default_poll_status()
        self._stop_event = threading.Event()
        self._thread = None

    def next_sequence(self):
        with self._lock:
            seq = self._next_seq
            self._next_seq += 1
            self._status["last_attempt"] = self._now_fn()
            return seq

    def publish(self, seq, result):
        """Apply `result` if `seq` is newer than the last applied response."""
        with self._lock:
            if seq <= self._status["last_applied_seq"]:
                self._status["discarded_count"] += 1
                logging.debug(
                    "Poller %s: discarded out-of-order response seq=%s (applied=%s)",
                    self.name,
                    seq,
                    self._status["last_applied_seq"],
                )
                return False
            self._status["last_applied_seq"] = seq
            self._status["last_success"] = self._now_fn()
            self._status["last_error"] = None
            # Applied under the poller lock so two responses cannot interleave.
            self._on_result(result)
        return True

    def fail(self, seq, exc):
        with self._lock:
            if seq < self._status["last_applied_seq"]:
                return False
            self._status["last_error"] = str(exc)
        if self._on_error is not None:
            self._on_error(exc)
        return True

    def poll_once(self):
        """Run one fetch in the calling thread; returns True if its result was applied."""
        seq = self.next_sequence()
        try:
            result = self._fetch_fn()
        except Exception as exc:
            logging.warning("Poller %s: fetch failed: %s", self.name, exc)
            self.fail(seq, exc)
            return False
        return self.publish(seq, result)

    def status(self):
        with self._lock:
            return dict(self._status)

    def run(self):
        logging.info("Poller %s started (period %.1fs).", self.name, self.period_s)
        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except Exception as exc:
                logging.error("Poller %s: unexpected error: %s", self.name, exc)
            self._stop_event.wait(self.period_s)
        logging.info("Poller %s stopped.", self.name)

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run, name=f"poller-{self.name}", daemon=True)
        self._thread.start()

    def stop(self, timeout_s=None):
        self._stop_event.set()
        thread = self._thread
        if thread is not None and timeout_s is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout_s)

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()
