"""
Stream workers: one following log read per tracked instance.

A StreamWorker runs in its own daemon thread. It opens a following log read,
pulls raw lines from it (blocking for as long as the pod stays quiet), runs
them through the filter pipeline and prints them through the shared
OutputWriter.

Lifecycle: PENDING -> STREAMING -> (RECONNECTING -> STREAMING)* -> STOPPED

Cancellation closes the open read handle. That is what unblocks a thread
waiting for new log data: the pending pull returns or raises instead of
waiting forever, and the worker then moves to STOPPED.

Failures never leave the worker: an open failure, an exhausted reconnect
budget or any unexpected error prints exactly one error line and stops the
worker, which the reconciliation loop reaps on its next tick.
"""

import logging
import re
import threading
from typing import Optional, Tuple

from .constants import MAX_RECONNECT_ATTEMPTS, RECONNECT_DELAY_SECONDS
from .exceptions import StreamOpenError, StreamReadError, WriteError
from .models import Color, FilterRules, InstanceKey, LogLine, LogOptions, WorkerState
from .output import OutputWriter
from .pipeline import transform_line

log = logging.getLogger('kubestern.worker')

TIMESTAMP_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\S+$")


def split_timestamp(raw: str) -> Tuple[Optional[str], str]:
    """Split the RFC3339 timestamp the API puts in front of a line, if any."""
    head, sep, rest = raw.partition(" ")
    if sep and TIMESTAMP_RE.match(head):
        return head, rest
    return None, raw


class StreamWorker:
    """
    Follows the logs of a single instance.

    Attributes:
        key: Instance followed by this worker
        color: Color its lines are printed in
        label: Prefix printed in front of every line
        state: Current lifecycle state
        error: Last contained error, if the worker stopped on a failure
    """

    def __init__(self, key: InstanceKey, color: Color, label: str, log_source, options: LogOptions,
                 rules: FilterRules, writer: OutputWriter,
                 max_reconnects: int = MAX_RECONNECT_ATTEMPTS,
                 reconnect_delay: float = RECONNECT_DELAY_SECONDS):
        self.key = key
        self.color = color
        self.label = label
        self.state = WorkerState.PENDING
        self.error: Optional[Exception] = None
        self._source = log_source
        self._options = options
        self._rules = rules
        self._writer = writer
        self._max_reconnects = max_reconnects
        self._reconnect_delay = reconnect_delay
        self._stop = threading.Event()
        self._handle_lock = threading.Lock()
        self._read = None
        self._thread = threading.Thread(target=self._run, name=f"stream-{key.identity()}", daemon=True)

    def start(self) -> None:
        self._thread.start()

    @property
    def done(self) -> bool:
        """True once the worker reached STOPPED (or was never started and cancelled)."""
        return self.state == WorkerState.STOPPED

    def cancel(self) -> None:
        """
        Ask the worker to stop and tear down its open read.

        Safe to call from any thread, any number of times.
        """
        self._stop.set()
        with self._handle_lock:
            read = self._read
        if read is not None:
            self._close(read)

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the worker thread to finish. Returns False on timeout."""
        if self._thread.ident is None:
            self.state = WorkerState.STOPPED
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _close(self, read) -> None:
        try:
            read.close()
        except Exception as e:
            log.debug(f"[worker] {self.label}: error while closing read: {e.__class__.__name__}: {e}")

    def _open(self, options: LogOptions):
        read = self._source.open_following_read(self.key, options)
        with self._handle_lock:
            if self._stop.is_set():
                self._close(read)
                return None
            self._read = read
        return read

    def _release(self, read) -> None:
        with self._handle_lock:
            self._read = None
        self._close(read)

    def _handle_line(self, raw: str) -> None:
        timestamp = None
        if self._options.timestamps:
            timestamp, raw = split_timestamp(raw)
        line = LogLine(self.key, raw, timestamp)
        text = transform_line(line.text, self._rules)
        if text is None:
            return
        self._writer.emit_log(self.label, text, self.color, line.timestamp)

    def _stream(self, read) -> int:
        """Pump lines from an open read until it ends. Returns the number of lines received."""
        received = 0
        for raw in read:
            if self._stop.is_set():
                break
            received += 1
            self._handle_line(raw)
        return received

    def _run(self) -> None:
        options = self._options
        failures = 0
        try:
            while not self._stop.is_set():
                try:
                    read = self._open(options)
                except StreamOpenError as e:
                    if self._stop.is_set():
                        break
                    if self.state == WorkerState.PENDING or failures >= self._max_reconnects:
                        self.error = e
                        self._writer.error(f"{self.label}: failed to open log stream: {e}")
                        break
                    failures += 1
                    log.info(f"[worker] {self.label}: reopen failed ({failures}/{self._max_reconnects}): {e}")
                    self._stop.wait(self._reconnect_delay)
                    continue
                if read is None:
                    break

                self.state = WorkerState.STREAMING
                reason = "end of stream"
                try:
                    if self._stream(read):
                        failures = 0
                except StreamReadError as e:
                    if self._stop.is_set():
                        break
                    reason = str(e)
                    self.error = e
                finally:
                    self._release(read)

                if self._stop.is_set():
                    break
                if failures >= self._max_reconnects:
                    self._writer.error(f"{self.label}: log stream ended: {reason}")
                    break
                failures += 1
                self.state = WorkerState.RECONNECTING
                log.info(f"[worker] {self.label}: {reason}, reconnecting ({failures}/{self._max_reconnects})")
                options = self._options.for_reconnect()
                self._stop.wait(self._reconnect_delay)
        except WriteError:
            # The writer already reported the failure to its owner.
            pass
        except Exception as e:
            self.error = e
            log.exception(f"[worker] {self.label}: unexpected failure")
            try:
                self._writer.error(f"{self.label}: log stream failed: {e.__class__.__name__}: {e}")
            except WriteError:
                pass
        finally:
            with self._handle_lock:
                read, self._read = self._read, None
            if read is not None:
                self._close(read)
            self.state = WorkerState.STOPPED
            log.debug(f"[worker] {self.label}: stopped")
