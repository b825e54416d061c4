"""Observable analysis state.

A single-writer cell holding the orchestrator's current ServiceState,
plus bounded subscriptions that deliver state changes to UI observers.
Readers never block the writer: a slow reader loses its oldest states.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import List, Optional

import structlog

from macro_analysis.domain.analysis.models import CompositeNutritionRecord

logger = structlog.get_logger(__name__)


class ServiceStatus(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class ServiceState:
    """
    Current processing state of an orchestrator.

    ``record`` is set only when succeeded, ``error`` only when failed.

    Example:
        >>> ServiceState.idle().status
        <ServiceStatus.IDLE: 'idle'>
    """

    status: ServiceStatus
    record: Optional[CompositeNutritionRecord] = None
    error: Optional[Exception] = None

    @classmethod
    def idle(cls) -> ServiceState:
        return cls(ServiceStatus.IDLE)

    @classmethod
    def analyzing(cls) -> ServiceState:
        return cls(ServiceStatus.ANALYZING)

    @classmethod
    def succeeded(cls, record: CompositeNutritionRecord) -> ServiceState:
        return cls(ServiceStatus.SUCCEEDED, record=record)

    @classmethod
    def failed(cls, error: Exception) -> ServiceState:
        return cls(ServiceStatus.FAILED, error=error)

    @property
    def is_busy(self) -> bool:
        return self.status == ServiceStatus.ANALYZING


_CLOSED = object()


class StateSubscription:
    """
    Async iterator over state changes.

    Starts with the state current at subscription time. Holds at most
    ``maxsize`` undelivered states, dropping the oldest when full.

    Example:
        >>> subscription = orchestrator.subscribe()
        >>> async for state in subscription:
        ...     render(state)
    """

    def __init__(self, cell: ServiceStateCell, maxsize: int) -> None:
        self._cell = cell
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.dropped = 0

    def _push(self, item: object) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(item)

    def deliver(self, state: ServiceState) -> None:
        if not self._closed:
            self._push(state)

    def close(self) -> None:
        """Stop receiving states. Iteration ends after queued states."""
        if self._closed:
            return
        self._closed = True
        self._cell._unsubscribe(self)
        self._push(_CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        return self._queue.qsize()

    def __aiter__(self) -> StateSubscription:
        return self

    async def __anext__(self) -> ServiceState:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item  # type: ignore[return-value]


class ServiceStateCell:
    """
    Single-writer, multi-reader state slot.

    Only the owning orchestrator calls ``set``; any number of observers
    read ``value`` or ``subscribe``.
    """

    def __init__(self, initial: Optional[ServiceState] = None) -> None:
        self._value = initial or ServiceState.idle()
        self._subscriptions: List[StateSubscription] = []
        self._lock = Lock()

    @property
    def value(self) -> ServiceState:
        with self._lock:
            return self._value

    def set(self, state: ServiceState) -> None:
        with self._lock:
            self._value = state
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.deliver(state)
        logger.debug("State changed", status=state.status.value, observers=len(subscriptions))

    def replace_if(self, expected: ServiceState, state: ServiceState) -> bool:
        """
        Set ``state`` only while the cell still holds ``expected``.

        Compares by identity, so an equal state published by another call
        does not match.

        Returns:
            True if the state was replaced
        """
        with self._lock:
            if self._value is not expected:
                return False
            self._value = state
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.deliver(state)
        logger.debug("State changed", status=state.status.value, observers=len(subscriptions))
        return True

    def subscribe(self, maxsize: int = 16) -> StateSubscription:
        """
        Register an observer.

        Args:
            maxsize: Undelivered states kept before dropping the oldest

        Returns:
            Subscription yielding the current state first
        """
        if maxsize < 1:
            raise ValueError(f"maxsize must be positive: {maxsize}")
        subscription = StateSubscription(self, maxsize)
        with self._lock:
            self._subscriptions.append(subscription)
            subscription.deliver(self._value)
        return subscription

    def _unsubscribe(self, subscription: StateSubscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def close(self) -> None:
        """Close every subscription."""
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.close()
