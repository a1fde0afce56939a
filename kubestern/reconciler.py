"""
Reconciliation loop: keeps one stream worker per matching instance.

On every tick the loop asks the discovery collaborator for the instances
whose name matches the pod search pattern, compares them with the tracking
table and converges:

- added instances get a color and a freshly started StreamWorker
- removed instances have their worker cancelled and joined before the entry
  is dropped
- workers that stopped on their own (open failure, reconnects exhausted) are
  reaped first, so a still-matching instance is restarted as newly added
- a worker that misses its stop timeout keeps its key blocked until its
  thread exits, so one instance never has two live workers

The tracking table is only ever touched by the loop itself. The palette is
built lazily on the first tick that has something to color and is read-only
afterwards.

Example:
    ```python
    reconciler = Reconciler(settings, KubeInstanceSource(core), KubeLogSource(core), writer, ["default"])
    await reconciler.run()
    ```
"""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from .colors import Palette, build_palette, palette_size
from .constants import WORKER_STOP_TIMEOUT_SECONDS
from .exceptions import DiscoveryError, WriteError
from .models import InstanceKey, TrackedInstance
from .output import OutputWriter
from .settings import Settings
from .worker import StreamWorker

log = logging.getLogger('kubestern.reconciler')


def _log_exception(msg: str, exc: Exception, level: int = logging.WARNING):
    """Log an exception with proper formatting."""
    log.log(level, f"{msg}: {exc.__class__.__name__}: {exc}")


class Reconciler:
    """
    Owns the tracking table and drives discovery ticks.

    Attributes:
        tracked: Tracking table, InstanceKey -> TrackedInstance
        palette: Color palette, None until the first instance is colored
        namespaces: Namespaces searched on every tick
        stalled: Removed workers that missed their stop timeout; their keys are
            not started again until the old thread has exited
    """

    def __init__(self, settings: Settings, instance_source, log_source, writer: OutputWriter,
                 namespaces: Sequence[str], stop_timeout: float = WORKER_STOP_TIMEOUT_SECONDS,
                 worker_factory=StreamWorker):
        self.settings = settings
        self.namespaces = list(namespaces)
        self.tracked: Dict[InstanceKey, TrackedInstance] = {}
        self.palette: Optional[Palette] = None
        self._instances = instance_source
        self._logs = log_source
        self._writer = writer
        self._stop_timeout = stop_timeout
        self._worker_factory = worker_factory
        self._stop_event: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._failure: Optional[WriteError] = None
        self.stalled: Dict[InstanceKey, StreamWorker] = {}
        self._show_namespace = len(self.namespaces) > 1

    # -- shutdown signalling -------------------------------------------------

    def _ensure_loop_state(self) -> asyncio.Event:
        if self._stop_event is None:
            self._loop = asyncio.get_running_loop()
            self._stop_event = asyncio.Event()
        return self._stop_event

    def request_stop(self) -> None:
        """Ask the loop to stop. Must be called from the event loop thread."""
        self._ensure_loop_state().set()

    def on_write_failure(self, error: WriteError) -> None:
        """Writer callback; may run on any worker thread."""
        self._failure = error
        if self._loop is not None and self._stop_event is not None:
            self._loop.call_soon_threadsafe(self._stop_event.set)

    # -- reconciliation ------------------------------------------------------

    async def discover(self) -> List[InstanceKey]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self._instances.list_instances, self.namespaces, self.settings.pod_search
        )

    async def tick(self, raise_on_failure: bool = False) -> bool:
        """
        Run one discovery and converge the tracking table.

        Args:
            raise_on_failure: Re-raise a DiscoveryError after reporting it

        Returns:
            bool: False when discovery failed (tracking table left unchanged)
        """
        try:
            matched = await self.discover()
        except DiscoveryError as e:
            _log_exception("[reconcile] discovery failed", e)
            self._writer.error(str(e))
            if raise_on_failure:
                raise
            return False

        matched = list(dict.fromkeys(matched))
        matched_set = set(matched)

        for key in [k for k, t in self.tracked.items() if t.worker.done]:
            log.info(f"[reconcile] reaping stopped worker {key.identity()}")
            await self._remove(key, verbose=key not in matched_set)

        self._collect_stalled()
        added = [k for k in matched if k not in self.tracked and k not in self.stalled]
        removed = [k for k in self.tracked if k not in matched_set]

        if added and self.palette is None:
            self.palette = build_palette(
                self.settings.hue_intervals, self.settings.color_saturation,
                self.settings.color_lightness, palette_size(self.settings.color_cycle_len, len(matched)),
            )
            log.info(f"[reconcile] palette built with {len(self.palette)} colors")

        self._update_padding(list(self.tracked) + added)
        for key in added:
            self._add(key)
        for key in removed:
            await self._remove(key)
        self._update_padding(self.tracked)

        if not self.tracked and self.settings.verbose:
            self._writer.info("no instance found")
        return True

    def _label(self, key: InstanceKey) -> str:
        return key.label(self._show_namespace)

    def _update_padding(self, keys) -> None:
        self._writer.set_padding(max((len(self._label(k)) for k in keys), default=0))

    def _add(self, key: InstanceKey) -> None:
        color = self.palette.assign(key)
        worker = self._worker_factory(
            key, color, self._label(key), self._logs, self.settings.log_options,
            self.settings.filter_rules, self._writer,
        )
        self.tracked[key] = TrackedInstance(key, color, worker)
        if self.settings.verbose:
            self._writer.emit(f"+ {self._label(key)} started, following {len(self.tracked)} instances", color)
        worker.start()

    async def _stop_worker(self, worker) -> bool:
        worker.cancel()
        loop = asyncio.get_running_loop()
        stopped = await loop.run_in_executor(None, worker.join, self._stop_timeout)
        if not stopped:
            log.warning(f"[reconcile] worker {worker.label} did not stop within {self._stop_timeout}s")
        return stopped

    def _collect_stalled(self) -> None:
        for key, worker in list(self.stalled.items()):
            if worker.join(0):
                log.info(f"[reconcile] stalled worker {key.identity()} finally stopped")
                del self.stalled[key]

    async def _remove(self, key: InstanceKey, verbose: bool = True) -> None:
        tracked = self.tracked[key]
        if not await self._stop_worker(tracked.worker):
            self.stalled[key] = tracked.worker
        del self.tracked[key]
        if verbose and self.settings.verbose:
            self._writer.emit(f"- {self._label(key)} ended, following {len(self.tracked)} instances", tracked.color)

    async def shutdown(self) -> None:
        """Cancel every worker, then wait for all of them to release their reads."""
        workers = [t.worker for t in self.tracked.values()] + list(self.stalled.values())
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*(self._stop_worker(w) for w in workers))
        self.tracked.clear()
        self.stalled.clear()

    async def _wait_stop(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def _check_failure(self) -> None:
        if self._failure is not None:
            raise self._failure

    async def run(self) -> None:
        """
        Run the loop until a stop is requested.

        The first discovery must succeed: a cluster that is unreachable at
        startup raises DiscoveryError. Later failures are reported and retried.

        Raises:
            DiscoveryError: If the very first discovery fails
            WriteError: If the output sink fails
        """
        stop_event = self._ensure_loop_state()
        try:
            await self.tick(raise_on_failure=True)

            while not stop_event.is_set():
                if not self.settings.refresh:
                    await stop_event.wait()
                    break
                if await self._wait_stop(self.settings.loop_pause):
                    break
                await self.tick()
        finally:
            await self.shutdown()
        self._check_failure()

