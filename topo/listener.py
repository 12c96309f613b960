"""Cluster listener: polls topology and relays it to the channel."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from topo.channel import (
    Channel,
    EVENT_CLUSTER_CONNECTED,
    EVENT_CLUSTER_DISCONNECTED,
    EVENT_CLUSTER_TOPOLOGY,
)
from topo.logs import ThrottledLogger
from topo.rest import RestExecutor, RestResult
from topo.scheduler import Scheduler, ScheduledTask
from topo.snapshot import TopologySnapshot, build_snapshot, decode_nodes, is_different_cluster

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MS = 3000

MODE_WATCH = "watch"
MODE_BROADCAST = "broadcast"

@dataclass(frozen=True)
class PollPolicy:
    """How a poll tick queries, compares and recovers."""
    name: str
    verbose: bool
    reverse_diff: bool  # compare new snapshot against held one instead of held against new
    query_active: bool
    emit_raw: bool  # forward the raw response text instead of re-encoding the snapshot
    demote_on_change: bool
    demote_on_failure: bool

WATCH_POLICY = PollPolicy(
    name=MODE_WATCH,
    verbose=False,
    reverse_diff=False,
    query_active=True,
    emit_raw=False,
    demote_on_change=False,
    demote_on_failure=False,
)

BROADCAST_POLICY = PollPolicy(
    name=MODE_BROADCAST,
    verbose=True,
    reverse_diff=True,
    query_active=False,
    emit_raw=True,
    demote_on_change=True,
    demote_on_failure=True,
)

class ClusterListener:
    """
    Tracks cluster topology and relays it to a subscriber channel.

    Runs in one of two modes. ``watch`` polls at the default cadence and keeps
    running through failures. ``broadcast`` polls at a subscriber-supplied
    cadence and falls back to ``watch`` on any failure or cluster change.
    Only one mode is scheduled at a time.
    """

    def __init__(
        self,
        rest: RestExecutor,
        channel: Channel,
        scheduler: Optional[Scheduler] = None,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        warn_throttle_s: float = 60.0,
    ) -> None:
        """
        Initialize cluster listener.

        Args:
            rest: Polling client exposing ``topology()`` and ``active()``
            channel: Channel used to publish cluster events
            scheduler: Shared scheduler (a private one is created if None)
            interval_ms: Watch mode cadence and broadcast fallback cadence
            warn_throttle_s: Window for suppressing repeated REST warnings
        """
        self.rest = rest
        self.channel = channel
        self.interval_ms = interval_ms if _valid_interval(interval_ms) else DEFAULT_INTERVAL_MS

        self._owns_scheduler = scheduler is None
        self.scheduler = scheduler or Scheduler(name="cluster-listener")

        self._lock = threading.RLock()
        self._top: Optional[TopologySnapshot] = None
        self._refresh_task: Optional[ScheduledTask] = None
        self._mode: Optional[str] = None

        self._warn = ThrottledLogger(logger, window_s=warn_throttle_s)

    # -------- state --------

    @property
    def snapshot(self) -> Optional[TopologySnapshot]:
        with self._lock:
            return self._top

    @property
    def connected(self) -> bool:
        return self.snapshot is not None

    @property
    def mode(self) -> Optional[str]:
        with self._lock:
            return self._mode

    # -------- mode controller --------

    def watch(self) -> None:
        """Start watching the cluster at the default cadence."""
        self._schedule(WATCH_POLICY, self.interval_ms)

    start_watch = watch

    def start_broadcast(self, interval_ms: Any = None) -> None:
        """Start broadcasting topology to the subscriber."""
        if not _valid_interval(interval_ms):
            interval_ms = self.interval_ms
        self._schedule(BROADCAST_POLICY, interval_ms)

    def stop_broadcast(self) -> None:
        """Stop broadcasting and go back to watching."""
        with self._lock:
            self._safe_stop_refresh()
            self.watch()

    def close(self) -> None:
        with self._lock:
            self._safe_stop_refresh()
        if self._owns_scheduler:
            self.scheduler.shutdown()

    def _safe_stop_refresh(self) -> None:
        if self._refresh_task is not None:
            self._refresh_task.cancel()
            self._refresh_task = None
        self._mode = None

    def _schedule(self, policy: PollPolicy, interval_ms: float) -> None:
        # Ticks look up their handle under the lock; it is installed before the lock is released.
        cell: list = []

        def tick() -> None:
            self._tick(policy, cell)

        with self._lock:
            self._safe_stop_refresh()
            task = self.scheduler.schedule_with_fixed_delay(
                tick, 0.0, interval_ms / 1000.0, name=f"{policy.name}-task"
            )
            cell.append(task)
            self._refresh_task = task
            self._mode = policy.name

        logger.debug(f"Scheduled {policy.name} task every {interval_ms}ms")

    def _tick(self, policy: PollPolicy, cell: list) -> None:
        with self._lock:
            task = cell[0] if cell else None
            if not self._is_installed(task):
                return

        # Remote calls run unlocked so mode switches are never held up by a slow cluster
        outcome = self._fetch(policy)

        outbox: List[Tuple[str, Optional[str]]] = []
        with self._lock:
            if not self._is_installed(task):
                logger.debug(f"Discarding result of cancelled {policy.name} task")
                return
            self._apply(policy, outcome, outbox)

        for event, payload in outbox:
            self.channel.emit(event, payload)

    def _is_installed(self, task: Optional[ScheduledTask]) -> bool:
        return task is not None and not task.cancelled and task is self._refresh_task

    # -------- poll --------

    def _fetch(self, policy: PollPolicy) -> "_PollOutcome":
        """Query the cluster and build a snapshot. Never raises."""
        try:
            res = self.rest.topology(full=False, verbose=policy.verbose)

            if not res.success:
                return _PollOutcome(res=res)

            new_top = build_snapshot(decode_nodes(res.data))

            if policy.query_active and not new_top.empty:
                new_top.active = self.rest.active(new_top.version, new_top.first_node_id())

            return _PollOutcome(res=res, snapshot=new_top)
        except Exception as e:
            return _PollOutcome(error=e)

    def _apply(self, policy: PollPolicy, outcome: "_PollOutcome", outbox: list) -> None:
        """Swap listener state for a poll outcome. Caller holds the lock."""
        if outcome.error is not None:
            if isinstance(outcome.error, ConnectionRefusedError):
                logger.debug(f"Cluster is unreachable: {outcome.error}")
            else:
                logger.error(f"{policy.name.capitalize()} task failed: {outcome.error}", exc_info=outcome.error)
            self._cluster_disconnect(outbox)
            if policy.demote_on_failure:
                self.watch()
            return

        res = outcome.res
        if not res.success:
            self._warn.warning(res.error or f"Topology request failed with status {res.status}")
            self._cluster_disconnect(outbox)
            return

        new_top = outcome.snapshot

        if policy.reverse_diff:
            changed = self._top is None or is_different_cluster(new_top, self._top)
        else:
            changed = is_different_cluster(self._top, new_top)

        if changed:
            if policy.demote_on_change:
                self._cluster_disconnect(outbox)
            self._log_connected(new_top)
            if policy.demote_on_change:
                self.watch()

        self._top = new_top

        payload = res.data if policy.emit_raw else new_top.to_json()
        outbox.append((EVENT_CLUSTER_TOPOLOGY, payload))

    # -------- events --------

    def announce(self) -> bool:
        """
        Emit the connect event for the held topology.

        Returns:
            False if no cluster is currently connected
        """
        with self._lock:
            top = self._top
            if top is None:
                return False
            self._log_connected(top)
            node_ids = list(top.node_ids)

        self.channel.emit(EVENT_CLUSTER_CONNECTED, json.dumps(node_ids))
        return True

    def _log_connected(self, top: TopologySnapshot) -> None:
        logger.info(f"Connection successfully established to cluster with nodes: {top.node_ids8()}")

    def _cluster_disconnect(self, outbox: list) -> None:
        if self._top is None:
            return

        self._top = None

        logger.info("Connection to cluster was lost")

        outbox.append((EVENT_CLUSTER_DISCONNECTED, None))

@dataclass
class _PollOutcome:
    res: Optional[RestResult] = None
    snapshot: Optional[TopologySnapshot] = None
    error: Optional[Exception] = None

def _valid_interval(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return value > 0
