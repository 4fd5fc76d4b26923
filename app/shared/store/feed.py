# app/shared/store/feed.py
"""
Canal de cambios en proceso: eventos INSERT/UPDATE/DELETE por relación.

La entrega es al-menos-una-vez y sin garantía de continuidad: si la cola de
un suscriptor se llena se descarta el evento más viejo. Quien consume debe
complementar con consultas periódicas.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import List, Sequence

from .base import Row

logger = logging.getLogger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"

_CLOSED = object()


@dataclass(frozen=True)
class ChangeEvent:
    event_type: str
    relation: str
    new_row: Row


class Subscription:
    def __init__(self, feed: "ChangeFeed", relation: str, event_types: Sequence[str], queue_size: int):
        self.feed = feed
        self.relation = relation
        self.event_types = frozenset(event_types)
        self.dropped = 0
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def wants(self, event: ChangeEvent) -> bool:
        return not self._closed and event.relation == self.relation and event.event_type in self.event_types

    def offer(self, item) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
            logger.debug(f"Cola de {self.relation} llena, se descarta el evento más viejo")
        self._queue.put_nowait(item)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.feed._unsubscribe(self)
        self.offer(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class ChangeFeed:
    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscriptions: List[Subscription] = []

    def subscribe(self, relation: str, event_types: Sequence[str] = (INSERT, UPDATE)) -> Subscription:
        subscription = Subscription(self, relation, event_types, self.queue_size)
        self._subscriptions.append(subscription)
        return subscription

    def publish(self, event: ChangeEvent) -> None:
        for subscription in list(self._subscriptions):
            if subscription.wants(event):
                subscription.offer(event)

    def close(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.close()

    def _unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
