import asyncio
import signal
from contextlib import AsyncExitStack

import aiohttp
from loguru import logger

from hue_light_sync.core.config import (
    HUE_BRIDGE_IP,
    HUE_BRIDGE_PORT,
    HUE_POLL_INTERVAL_MS,
    HUE_USERNAME,
)
from hue_light_sync.data.models import StateMessage
from hue_light_sync.data.processor import LightSyncEngine
from hue_light_sync.lights.bridge import HueBridgeClient, validate_key


def log_state(message: StateMessage) -> None:
    payload = message.payload
    if not payload.reachable:
        status = "disconnected"
    elif not payload.on:
        status = "off"
    else:
        status = f"on ({payload.bri}%) {payload.hex}"
    logger.info(f"[{message.event}] {message.id} {message.name}: {status}")


async def main() -> int:
    # Check the key up front, a bad key only shows up as empty listings later
    loop = asyncio.get_running_loop()
    valid = await loop.run_in_executor(
        None, validate_key, HUE_BRIDGE_IP, HUE_USERNAME, HUE_BRIDGE_PORT
    )
    if not valid:
        logger.error(f"Bridge at {HUE_BRIDGE_IP} rejected the API key")
        return 1

    async with AsyncExitStack() as exit_stack:
        session = await exit_stack.enter_async_context(aiohttp.ClientSession())
        client = HueBridgeClient(
            HUE_BRIDGE_IP, HUE_USERNAME, port=HUE_BRIDGE_PORT, session=session
        )
        engine = LightSyncEngine(client, interval=HUE_POLL_INTERVAL_MS)

        # Subscribe to every light as it is discovered, registering delivers its state
        def on_new_light(message: StateMessage) -> None:
            engine.register_subscriber(message.id, "logger", log_state)

        engine.add_discovery_listener(on_new_light)

        if not await engine.start():
            logger.error("Could not read lights from the bridge")
            return 1
        exit_stack.push_async_callback(engine.stop)

        # Setup signal handling for clean shutdown
        shutdown_requested = asyncio.Event()

        def handle_signal():
            logger.info("Shutdown signal received")
            shutdown_requested.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, handle_signal)

        await shutdown_requested.wait()

    logger.info(f"Stopped after {engine.polls_completed} polls")
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
