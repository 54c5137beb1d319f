# -*- coding: utf-8 -*-
# fleet/history.py - async history fetch with stale-response protection

from __future__ import annotations

import asyncio
import concurrent.futures
import functools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from .models import Snapshot
from .storage import Storage, StorageError

log = logging.getLogger("fleetvital.history")

Derive = Callable[[List[Snapshot], Optional[str]], Any]


class FetchError(RuntimeError):
    """The snapshot store could not answer a history query."""

    def __init__(self, node_id: str, message: str) -> None:
        super().__init__(f"[{node_id}] {message}")
        self.node_id = node_id


# ---------------------------------------------------------------------
# Task spawn helper
# ---------------------------------------------------------------------

def spawn_task(coro: Awaitable[Any], name: str) -> asyncio.Task:
    """
    create_task with explicit crash logging:
      - CancelledError -> INFO
      - any other exception -> ERROR + traceback
    """
    task = asyncio.ensure_future(coro)
    if hasattr(task, "set_name"):
        task.set_name(name)

    def _done_callback(t: asyncio.Task) -> None:
        try:
            t.result()
        except (asyncio.CancelledError, concurrent.futures.CancelledError):
            log.info("Task cancelled: %s", name)
        except Exception:
            log.exception("Task CRASHED: %s", name)

    task.add_done_callback(_done_callback)
    return task


# ---------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------

@dataclass
class Slot:
    """
    One derived-state slot (e.g. "inspector" or a node's card).
    Only the response of the newest request may write here.
    """
    generation: int = 0
    committed_generation: int = 0
    value: Any = None
    error: Optional[str] = None
    updated_at: Optional[float] = None
    dropped: int = 0


class HistoryFetcher:
    """
    Runs blocking store queries off the event loop and commits results to
    named slots by request generation, not by completion order.
    """

    def __init__(self, storage: Storage, executor: Optional[concurrent.futures.Executor] = None) -> None:
        self._storage = storage
        self._executor = executor
        self._slots: Dict[str, Slot] = {}

    def slot(self, name: str) -> Slot:
        return self._slots.setdefault(name, Slot())

    def invalidate(self, name: str) -> int:
        """Supersede whatever is in flight for `name` (scope changed)."""
        s = self.slot(name)
        s.generation += 1
        return s.generation

    async def fetch(self, node_id: str, since: Optional[float], network: Optional[str] = None) -> List[Snapshot]:
        loop = asyncio.get_running_loop()
        call = functools.partial(self._storage.fetch_history, node_id, since, network)
        try:
            return await loop.run_in_executor(self._executor, call)
        except StorageError as e:
            raise FetchError(node_id, str(e)) from e

    async def request(
        self,
        slot_name: str,
        node_id: str,
        since: Optional[float],
        derive: Derive,
        network: Optional[str] = None,
    ) -> bool:
        """
        Fetch, derive and commit into `slot_name`.

        A failed fetch is logged and derived from an empty sample list with
        the error attached. Returns False when a newer request superseded
        this one while it was in flight; nothing is written then.
        """
        s = self.slot(slot_name)
        s.generation += 1
        gen = s.generation

        samples: List[Snapshot] = []
        error: Optional[str] = None
        try:
            samples = await self.fetch(node_id, since, network)
        except FetchError as e:
            log.warning("History fetch failed: %s", e)
            error = str(e)

        if gen != s.generation:
            s.dropped += 1
            log.debug("[%s] dropping stale response gen=%d (current=%d)", slot_name, gen, s.generation)
            return False

        s.value = derive(samples, error)
        s.error = error
        s.committed_generation = gen
        s.updated_at = time.time()
        return True


# ---------------------------------------------------------------------
# Poller
# ---------------------------------------------------------------------

@dataclass
class PollTarget:
    slot_name: str
    node_id: str
    since_fn: Callable[[], Optional[float]]
    derive: Derive
    network: Optional[str] = None


@dataclass
class HistoryPoller:
    """Re-runs fetch-then-derive for every target at a fixed interval."""

    fetcher: HistoryFetcher
    targets: Sequence[PollTarget]
    interval_s: float = 10.0
    on_cycle: Optional[Callable[[], None]] = None
    _task: Optional[asyncio.Task] = field(default=None, init=False, repr=False)
    cycles: int = field(default=0, init=False)

    async def poll_once(self) -> None:
        await asyncio.gather(
            *(self.fetcher.request(t.slot_name, t.node_id, t.since_fn(), t.derive, t.network) for t in self.targets)
        )
        self.cycles += 1
        if self.on_cycle is not None:
            self.on_cycle()

    async def _loop(self) -> None:
        log.info("Poller started: %d targets every %.1fs", len(self.targets), self.interval_s)
        while True:
            try:
                await self.poll_once()
            except (asyncio.CancelledError, concurrent.futures.CancelledError):
                raise
            except Exception as e:
                log.exception("Poll cycle error: %s", e)
            await asyncio.sleep(self.interval_s)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = spawn_task(self._loop(), "fleet:poller")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        log.info("Poller stopped after %d cycles", self.cycles)
