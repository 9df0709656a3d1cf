"""Queue interface and worker loop.

Delivery is at-least-once: a worker acknowledges a delivery only after the
orchestrator has finished with it, and a delivery that is not acknowledged
(nack, or the worker died) is handed out again. The orchestrator's
idempotency is what makes a redelivery harmless.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from codesage_core.orchestrator import AnalysisOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class Delivery:
    payload: Any
    attempt: int = 1


class BaseQueue(ABC):
    @abstractmethod
    def put(self, payload: Any) -> None:
        """Enqueue a payload. Must return quickly; never runs the pipeline."""

    @abstractmethod
    def get(self, timeout: float | None = None) -> Delivery | None:
        """Return the next delivery, or None if nothing arrived within timeout."""

    @abstractmethod
    def ack(self, delivery: Delivery) -> None: ...

    @abstractmethod
    def nack(self, delivery: Delivery) -> None:
        """Give a delivery back so it is redelivered."""


class LocalQueue(BaseQueue):
    """In-process queue on top of queue.Queue, for the CLI and tests."""

    def __init__(self, max_deliveries: int = 3):
        self._queue: queue.Queue[Delivery] = queue.Queue()
        self._max_deliveries = max_deliveries

    def put(self, payload: Any) -> None:
        self._queue.put(Delivery(payload=payload))

    def get(self, timeout: float | None = None) -> Delivery | None:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def ack(self, delivery: Delivery) -> None:
        self._queue.task_done()

    def nack(self, delivery: Delivery) -> None:
        # Re-put before task_done so the unfinished count never drops to zero in between.
        if delivery.attempt >= self._max_deliveries:
            logger.error("Dropping delivery after %d attempts", delivery.attempt)
        else:
            self._queue.put(Delivery(payload=delivery.payload, attempt=delivery.attempt + 1))
        self._queue.task_done()

    def pending(self) -> int:
        """Deliveries that are queued or handed out but not yet acknowledged."""
        with self._queue.mutex:
            return self._queue.unfinished_tasks


def run_worker(
    work_queue: BaseQueue,
    orchestrator: AnalysisOrchestrator,
    stop: threading.Event,
    poll_interval: float = 0.5,
) -> int:
    """Consume deliveries until `stop` is set. Returns how many were acknowledged."""
    handled = 0
    while not stop.is_set():
        delivery = work_queue.get(timeout=poll_interval)
        if delivery is None:
            continue
        try:
            orchestrator.handle(delivery.payload)
        except BaseException:
            # handle() does not raise, so this is the worker itself dying.
            work_queue.nack(delivery)
            raise
        work_queue.ack(delivery)
        handled += 1
    return handled


def drain(work_queue: LocalQueue, orchestrator: AnalysisOrchestrator, workers: int = 1) -> int:
    """Run `workers` threads until every queued delivery has been acknowledged."""
    stop = threading.Event()
    with ThreadPoolExecutor(max_workers=max(workers, 1), thread_name_prefix="codesage-worker") as pool:
        futures = [
            pool.submit(run_worker, work_queue, orchestrator, stop, 0.1) for _ in range(max(workers, 1))
        ]
        # Give up early if every worker has died.
        while work_queue.pending() and not all(f.done() for f in futures):
            time.sleep(0.05)
        stop.set()
        return sum(f.result() for f in futures)
