"""
Publish/subscribe channel between independently rendered UI panels.
The calculator panel publishes chat prompts; the chat panel subscribes to them.
"""
import logging
from collections import defaultdict, deque
from typing import Any, Callable, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)

CHAT_PROMPT_TOPIC = "chat.prompt"

Handler = Callable[[Any], None]


class MessageBus:
    """
    Topic-based message bus.

    Subscriptions registered with a key replace any earlier subscription with the
    same key, so a panel that re-subscribes on every Streamlit rerun keeps a single
    handler. Messages published to a topic nobody listens to are held and handed
    to the next subscriber of that topic.
    """

    def __init__(self):
        self._subscribers: Dict[str, Dict[Any, Handler]] = defaultdict(dict)
        self._pending: Dict[str, Deque[Any]] = defaultdict(deque)
        self._next_token = 0

    def subscribe(self, topic: str, handler: Handler, key: Optional[str] = None) -> Callable[[], None]:
        """
        Register a handler for a topic.

        Returns:
            Function that removes this subscription
        """
        if key is None:
            self._next_token += 1
            token: Any = ('anonymous', self._next_token)
        else:
            token = key

        self._subscribers[topic][token] = handler

        pending = self._pending.pop(topic, None)
        while pending:
            handler(pending.popleft())

        def unsubscribe():
            subscribers = self._subscribers.get(topic, {})
            if subscribers.get(token) is handler:
                del subscribers[token]

        return unsubscribe

    def publish(self, topic: str, message: Any) -> int:
        """
        Deliver a message to every subscriber of a topic.

        Returns:
            Number of handlers the message was delivered to; 0 means it was queued
        """
        handlers = list(self._subscribers.get(topic, {}).values())
        if not handlers:
            self._pending[topic].append(message)
            logger.debug("Queued message for %s (no subscribers)", topic)
            return 0

        for handler in handlers:
            handler(message)
        return len(handlers)

    def drain(self, topic: str) -> List[Any]:
        """Remove and return messages still waiting for a subscriber"""
        return list(self._pending.pop(topic, ()))

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, {}))
