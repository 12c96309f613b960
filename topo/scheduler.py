"""Single-worker fixed-delay scheduler."""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class ScheduledTask:
	"""Handle for a recurring task registered with a :class:`Scheduler`."""

	def __init__(
		self,
		scheduler: "Scheduler",
		fn: Callable[[], None],
		delay_s: float,
		name: str = "",
	) -> None:
		self._scheduler = scheduler
		self.fn = fn
		self.delay_s = delay_s
		self.name = name or getattr(fn, "__name__", "task")
		self._cancelled = threading.Event()

	@property
	def cancelled(self) -> bool:
		return self._cancelled.is_set()

	def cancel(self) -> bool:
		"""
		Cancel further executions.

		A run that is already in progress is not interrupted; it finishes and
		is not rescheduled.

		Returns:
			False if the task was already cancelled
		"""
		if self._cancelled.is_set():
			return False
		self._cancelled.set()
		self._scheduler._wakeup()
		return True

	def __repr__(self) -> str:
		state = "cancelled" if self.cancelled else "scheduled"
		return f"ScheduledTask({self.name!r}, every {self.delay_s}s, {state})"


class Scheduler:
	"""
	Runs recurring tasks one at a time on a single daemon thread.

	Uses fixed-delay semantics: the next run of a task is due ``delay_s``
	seconds after its previous run completed. Tasks never overlap, with
	themselves or with each other.
	"""

	def __init__(self, name: str = "topo-scheduler") -> None:
		self.name = name
		self._queue: List[Tuple[float, int, ScheduledTask]] = []
		self._seq = itertools.count()
		self._cond = threading.Condition()
		self._thread: Optional[threading.Thread] = None
		self._shutdown = False

	def schedule_with_fixed_delay(
		self,
		fn: Callable[[], None],
		initial_delay_s: float,
		delay_s: float,
		name: str = "",
	) -> ScheduledTask:
		if delay_s <= 0:
			raise ValueError(f"delay must be positive, got {delay_s}")

		task = ScheduledTask(self, fn, delay_s, name=name)

		with self._cond:
			if self._shutdown:
				raise RuntimeError(f"Scheduler '{self.name}' is shut down")
			self._push_locked(task, time.monotonic() + max(0.0, initial_delay_s))
			self._ensure_worker_locked()
			self._cond.notify_all()

		return task

	def pending(self) -> int:
		"""Number of scheduled tasks that are not cancelled."""
		with self._cond:
			return sum(1 for _, _, task in self._queue if not task.cancelled)

	def shutdown(self, wait: bool = True, timeout: float = 5.0) -> None:
		with self._cond:
			self._shutdown = True
			for _, _, task in self._queue:
				task._cancelled.set()
			self._queue.clear()
			self._cond.notify_all()
			thread = self._thread

		if wait and thread and thread is not threading.current_thread():
			thread.join(timeout=timeout)
		logger.debug(f"Scheduler '{self.name}' stopped")

	def _push_locked(self, task: ScheduledTask, due: float) -> None:
		heapq.heappush(self._queue, (due, next(self._seq), task))

	def _ensure_worker_locked(self) -> None:
		if self._thread and self._thread.is_alive():
			return
		self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
		self._thread.start()

	def _wakeup(self) -> None:
		with self._cond:
			self._cond.notify_all()

	def _next_due_locked(self) -> Optional[ScheduledTask]:
		"""Wait until a task is due. Returns None on shutdown."""
		while not self._shutdown:
			# Cancelled tasks are dropped lazily from the head of the heap
			while self._queue and self._queue[0][2].cancelled:
				heapq.heappop(self._queue)

			if not self._queue:
				self._cond.wait()
				continue

			due, _, task = self._queue[0]
			remaining = due - time.monotonic()
			if remaining > 0:
				self._cond.wait(remaining)
				continue

			heapq.heappop(self._queue)
			return task
		return None

	def _run(self) -> None:
		while True:
			with self._cond:
				task = self._next_due_locked()
			if task is None:
				return

			try:
				task.fn()
			except Exception as e:
				logger.error(f"Scheduled task '{task.name}' failed: {e}", exc_info=True)

			with self._cond:
				if not task.cancelled and not self._shutdown:
					self._push_locked(task, time.monotonic() + task.delay_s)
