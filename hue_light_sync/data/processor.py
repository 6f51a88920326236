import asyncio
import math
from collections import deque
from types import TracebackType
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Set, Tuple, Type

from loguru import logger

from hue_light_sync.core.utils import TaskManager, run_with_errorhandling
from hue_light_sync.data.light import LightEntity
from hue_light_sync.data.models import (
    DesiredState,
    DeviceListing,
    KnownDevice,
    LightEvent,
    StateMessage,
)
from hue_light_sync.data.registry import Handle, HandlerRegistry
from hue_light_sync.lights.bridge import BridgeClient

DEFAULT_POLL_INTERVAL_MS = 10000
MIN_POLL_INTERVAL_MS = 500

# Group 0 is the bridge's pseudo group containing every light
ALL_LIGHTS_GROUP_ID = "0"


def light_key(bridge_id: Any, is_group: bool) -> str:
    """Engine id for a bridge light or group, e.g. ``light3`` or ``group1``"""
    return f"{'group' if is_group else 'light'}{bridge_id}"


def normalize_interval(interval: Any) -> int:
    """Parse a poll interval in ms, falling back to the default and never below the floor"""
    if isinstance(interval, str):
        try:
            interval = int(interval.strip(), 10)
        except ValueError:
            interval = None

    if isinstance(interval, bool) or not isinstance(interval, (int, float)):
        return DEFAULT_POLL_INTERVAL_MS
    if math.isnan(interval):
        return DEFAULT_POLL_INTERVAL_MS
    return int(max(interval, MIN_POLL_INTERVAL_MS))


class LightSyncEngine:
    """
    Keeps LightEntity objects in sync with a bridge by polling it.

    New lights and groups are created as they show up, known ones get the
    polled state merged in. Commands from subscribers are applied to the
    entity right away and forwarded to the bridge without waiting for a poll.

    Notifications to subscribers are never delivered from inside entity
    code: they are scheduled on the event loop (or, without a running loop,
    queued and delivered once the current call has finished).
    """

    def __init__(self, client: BridgeClient, interval: Any = DEFAULT_POLL_INTERVAL_MS):
        self.client = client
        self.interval_ms = normalize_interval(interval)
        self.lights: Dict[str, LightEntity] = {}
        self.registry = HandlerRegistry()

        self.polling = False
        self.polls_completed = 0
        self._poller: Optional[TaskManager] = None
        self._poll_tasks: Set[asyncio.Task] = set()
        self._send_tasks: Set[asyncio.Task] = set()
        self._pending: Deque[Tuple[Callable[..., None], tuple]] = deque()
        self._discovery_listeners: List[Callable[[StateMessage], None]] = []
        # Lights whose "new" message went out, later subscribers get their own
        self._announced: Set[str] = set()

    @property
    def poller(self) -> TaskManager:
        """Get a TaskManager running the periodic poll loop.

        Returns:
            A TaskManager that can be used with async with
        """
        return TaskManager(self._poll_loop, name="BridgePoller", timeout=1.0)

    @property
    def running(self) -> bool:
        return self._poller is not None and self._poller.running

    async def start(self) -> bool:
        """Poll the bridge once and start periodic polling if that worked.

        Returns:
            bool: False if the initial poll failed, polling is not started then
        """
        if self.running:
            return True

        if not await self.poll_changes():
            logger.warning("Initial poll of the bridge failed, polling not started")
            return False

        self._poller = self.poller
        await self._poller.__aenter__()
        logger.info(
            f"Polling bridge every {self.interval_ms} ms, "
            f"{len(self.lights)} lights and groups known"
        )
        return True

    async def stop(self) -> None:
        """Stop polling and drop every known light"""
        if self._poller is not None:
            await self._poller.cancel()
            self._poller = None

        # Pending bridge writes are dropped along with the polls
        tasks = self._poll_tasks | self._send_tasks
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.wait(tasks, timeout=1.0)
        self._poll_tasks.clear()
        self._send_tasks.clear()

        for light in self.lights.values():
            light.clear_listeners()
        self.lights = {}
        self._announced.clear()
        self._pending.clear()
        logger.info("Light sync engine stopped")

    async def __aenter__(self) -> "LightSyncEngine":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        await self.stop()

    async def _poll_loop(self):
        while True:
            await asyncio.sleep(self.interval_ms / 1000)
            # Ticks are not queued, a tick arriving mid-poll is dropped
            task = asyncio.create_task(self.poll_changes())
            self._poll_tasks.add(task)
            task.add_done_callback(self._poll_tasks.discard)

    async def poll_changes(self) -> bool:
        """Fetch lights and groups from the bridge and merge them into the known lights.

        Returns:
            bool: True if the poll completed, False if it failed or was dropped
        """
        if self.polling:
            logger.debug("Poll already in progress, dropping tick")
            return False

        self.polling = True
        try:
            lights = await self.client.list_lights()
            groups = await self.client.list_groups()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Failed to poll bridge: {e}")
            return False
        finally:
            self.polling = False

        self._process_items(lights, is_group=False)
        self._process_items(groups, is_group=True)
        self.polls_completed += 1
        self._flush_pending()
        return True

    def _process_items(self, items: Iterable[Dict[str, Any]], is_group: bool) -> None:
        for item in items or []:
            bridge_id = item.get("id") if isinstance(item, dict) else None
            if bridge_id is None:
                logger.warning(f"Ignoring bridge entry without id: {item!r}")
                continue
            bridge_id = str(bridge_id)
            if is_group and bridge_id == ALL_LIGHTS_GROUP_ID:
                continue

            light_id = light_key(bridge_id, is_group)
            try:
                light = self.lights.get(light_id)
                if light is None:
                    self._add_light(light_id, item, is_group)
                else:
                    light.reconcile_observed(item)
            except Exception:
                logger.exception(f"Failed to process bridge entry {light_id}")

    def _add_light(self, light_id: str, item: Dict[str, Any], is_group: bool) -> None:
        light = LightEntity(light_id, item, is_group=is_group)
        light.add_listener(self._on_light_event)
        self.lights[light_id] = light
        logger.info(f"Found {light.info.type or 'light'} {light_id}: {light.info.name}")

        message = light.get_state_message(event="new")
        self._defer(self._deliver_new, light_id, message)

    def _defer(self, callback: Callable[..., None], *args) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._pending.append((callback, args))
            return
        loop.call_soon(callback, *args)

    def _flush_pending(self) -> None:
        while self._pending:
            callback, args = self._pending.popleft()
            callback(*args)

    def _deliver_new(self, light_id: str, message: StateMessage) -> None:
        if light_id not in self.lights:
            return
        self._announced.add(light_id)
        self.registry.dispatch(light_id, message)
        for listener in list(self._discovery_listeners):
            try:
                listener(message.model_copy(deep=True))
            except Exception:
                logger.exception(f"Discovery listener failed for {light_id}")

    def _deliver_update(self, light_id: str, event: str) -> None:
        light = self.lights.get(light_id)
        if light is None:
            return
        self.registry.dispatch(light_id, light.get_state_message(event=event))

    def _deliver_to(self, handle: Handle, message: StateMessage) -> None:
        try:
            handle(message)
        except Exception:
            logger.exception(f"Subscriber failed handling initial state of {message.id}")

    def _on_light_event(self, event: LightEvent, light: LightEntity, data: Any) -> None:
        if event == LightEvent.SEND:
            self._send(data)
        elif event in (LightEvent.CHANGE, LightEvent.UPDATE):
            if self.registry.subscriber_count(light.light_id):
                self._defer(self._deliver_update, light.light_id, event.value)
        elif event == LightEvent.WARNING:
            logger.debug(f"{light.light_id} rejected input: {data}")

    def _send(self, desired: DesiredState) -> None:
        if desired.is_group:
            request = self.client.set_group_state(desired.target_id, desired.to_bridge())
        else:
            request = self.client.set_light_state(desired.target_id, desired.to_bridge())

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            request.close()
            logger.warning(f"No running event loop, state for {desired.target_id} not sent")
            return

        task = loop.create_task(
            run_with_errorhandling(
                request, f"Failed to send state to {desired.target_id}"
            )
        )
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)

    def add_discovery_listener(self, listener: Callable[[StateMessage], None]) -> None:
        """Call listener with the ``new`` message of every light found from now on"""
        self._discovery_listeners.append(listener)

    def remove_discovery_listener(self, listener: Callable[[StateMessage], None]) -> None:
        if listener in self._discovery_listeners:
            self._discovery_listeners.remove(listener)

    def register_subscriber(self, light_id: str, subscriber_id: str, handle: Handle) -> None:
        """Subscribe to a light.

        The current state is delivered right after if the light has been
        announced, otherwise the pending "new" message reaches the subscriber.
        """
        self.registry.register(light_id, subscriber_id, handle)

        light = self.lights.get(light_id)
        if light is not None and light_id in self._announced:
            self._defer(self._deliver_to, handle, light.get_state_message(event="new"))
            self._flush_pending()

    def unregister_subscriber(self, light_id: str, subscriber_id: str) -> bool:
        return self.registry.unregister(light_id, subscriber_id)

    def apply_command(self, light_id: str, command: Any) -> bool:
        """Apply a command to a light.

        Args:
            light_id: Engine id of the light or group
            command: Command in any shape LightEntity.apply_command accepts

        Returns:
            bool: False if no such light is known (yet)
        """
        light = self.lights.get(light_id)
        if light is None:
            return False

        light.apply_command(command)
        self._flush_pending()
        return True

    def get_state_message(self, light_id: str) -> Optional[StateMessage]:
        light = self.lights.get(light_id)
        if light is None:
            return None
        return light.get_state_message()

    def list_known_devices(self) -> DeviceListing:
        listing = DeviceListing()
        for light_id, light in self.lights.items():
            device = KnownDevice(id=light_id, hue_id=light.info.id, name=light.info.name)
            if light.is_group:
                listing.groups.append(device)
            else:
                listing.lights.append(device)
        return listing
