"""
Realtime fan-out: routes change events to whoever is watching a group.

publish() hands each event to every matching subscriber synchronously, in
call order. Services publish right after their write returns, so subscribers
see events in publish order. That matches commit order when writes do not
interleave (the in-memory gateway never awaits mid-write); two requests
racing against Supabase may publish in the opposite order to their commits.
Nothing is buffered for absent subscribers; a client that reconnects
re-fetches over HTTP.
"""
import logging
from collections import defaultdict
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Set

from app.modules.realtime.events import ChangeEvent, EventKind, EventOp

logger = logging.getLogger(__name__)

Handler = Callable[[ChangeEvent], None]


class Subscription:
    def __init__(
        self,
        channel: "RealtimeChannel",
        topic: str,
        handler: Handler,
        connection_id: Optional[str],
        kinds: Optional[FrozenSet[EventKind]],
    ):
        self._channel = channel
        self.topic = topic
        self.handler = handler
        self.connection_id = connection_id
        self.kinds = kinds
        self.active = True

    def accepts(self, event: ChangeEvent) -> bool:
        return self.kinds is None or event.kind in self.kinds

    def unsubscribe(self) -> None:
        if self.active:
            self._channel._remove(self)


class RealtimeChannel:
    def __init__(self):
        self._topics: Dict[str, List[Subscription]] = defaultdict(list)
        self._connections: Dict[str, Set[Subscription]] = defaultdict(set)

    def _add(
        self,
        topic: str,
        handler: Handler,
        connection_id: Optional[str],
        kinds: Optional[Iterable[EventKind]],
    ) -> Subscription:
        sub = Subscription(self, topic, handler, connection_id, frozenset(kinds) if kinds else None)
        self._topics[topic].append(sub)
        if connection_id is not None:
            self._connections[connection_id].add(sub)
        return sub

    def _remove(self, sub: Subscription) -> None:
        sub.active = False
        subs = self._topics.get(sub.topic)
        if subs is not None:
            if sub in subs:
                subs.remove(sub)
            if not subs:
                del self._topics[sub.topic]
        if sub.connection_id is not None:
            owned = self._connections.get(sub.connection_id)
            if owned is not None:
                owned.discard(sub)
                if not owned:
                    del self._connections[sub.connection_id]

    def subscribe(
        self,
        group_id: str,
        handler: Handler,
        connection_id: Optional[str] = None,
        kinds: Optional[Iterable[EventKind]] = None,
    ) -> Subscription:
        """Deliver events for group_id (optionally only the given kinds) to handler."""
        return self._add(f"group:{group_id}", handler, connection_id, kinds)

    def subscribe_user(self, user_id: str, handler: Handler, connection_id: Optional[str] = None) -> Subscription:
        """Deliver personal events (notifications) addressed to user_id."""
        return self._add(f"user:{user_id}", handler, connection_id, None)

    def subscribe_kind(
        self,
        kind: EventKind,
        group_id: str,
        on_create: Callable[[dict], None],
        on_update: Callable[[dict], None],
    ) -> Callable[[], None]:
        """Callback-style subscription to one record kind; returns an unsubscribe callable."""
        def dispatch(event: ChangeEvent) -> None:
            if event.op == EventOp.CREATE:
                on_create(event.payload)
            elif event.op == EventOp.UPDATE:
                on_update(event.payload)

        sub = self.subscribe(group_id, dispatch, kinds=[kind])
        return sub.unsubscribe

    def publish(self, event: ChangeEvent) -> int:
        """Hand the event to every matching subscriber. Returns how many received it."""
        delivered = 0
        # snapshot: handlers may unsubscribe while we iterate
        for sub in list(self._topics.get(event.topic, ())):
            if not sub.active or not sub.accepts(event):
                continue
            try:
                sub.handler(event)
                delivered += 1
            except Exception as e:
                logger.warning(f"Realtime handler failed on {event.topic} ({event.kind.value}/{event.op.value}): {e}")
        return delivered

    def disconnect(self, connection_id: str) -> int:
        """Release every registration the connection holds, in every topic."""
        owned = list(self._connections.get(connection_id, ()))
        for sub in owned:
            self._remove(sub)
        if owned:
            logger.debug(f"Released {len(owned)} subscription(s) for connection {connection_id}")
        return len(owned)

    def subscriber_count(self, group_id: str) -> int:
        return len(self._topics.get(f"group:{group_id}", ()))

    def connection_topics(self, connection_id: str) -> Set[str]:
        return {sub.topic for sub in self._connections.get(connection_id, ())}
