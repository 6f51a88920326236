from typing import Callable, Dict, List, Optional

from loguru import logger

from hue_light_sync.data.models import StateMessage

Handle = Callable[[StateMessage], None]


class HandlerRegistry:
    """
    Subscribers interested in a light, keyed by light id and subscriber id.

    Subscribers may register for ids that haven't been discovered yet; they
    receive a ``new`` message once the light shows up.
    """

    def __init__(self):
        self._handles: Dict[str, Dict[str, Handle]] = {}

    def register(self, light_id: str, subscriber_id: str, handle: Handle) -> None:
        self._handles.setdefault(light_id, {})[subscriber_id] = handle
        logger.debug(f"Registered subscriber {subscriber_id} for {light_id}")

    def unregister(self, light_id: str, subscriber_id: str) -> bool:
        """Remove a subscriber, False if it wasn't registered"""
        handles = self._handles.get(light_id)
        if not handles or subscriber_id not in handles:
            return False

        del handles[subscriber_id]
        if not handles:
            del self._handles[light_id]
        logger.debug(f"Unregistered subscriber {subscriber_id} for {light_id}")
        return True

    def handles_for(self, light_id: str) -> List[Handle]:
        return list(self._handles.get(light_id, {}).values())

    def subscriber_count(self, light_id: Optional[str] = None) -> int:
        if light_id is not None:
            return len(self._handles.get(light_id, {}))
        return sum(len(handles) for handles in self._handles.values())

    def dispatch(self, light_id: str, message: StateMessage) -> int:
        """Deliver a message to every subscriber of a light.

        Each subscriber gets its own copy of the message. A subscriber raising
        doesn't stop delivery to the others.

        Args:
            light_id: Light the message is about
            message: State message to deliver

        Returns:
            int: Number of subscribers the message was delivered to
        """
        delivered = 0
        for handle in self.handles_for(light_id):
            try:
                handle(message.model_copy(deep=True))
                delivered += 1
            except Exception:
                logger.exception(f"Subscriber for {light_id} failed handling message")
        return delivered

    def clear(self) -> None:
        self._handles.clear()
