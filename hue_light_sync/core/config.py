import os

from dotenv import load_dotenv

load_dotenv()

HUE_BRIDGE_IP: str = os.getenv("HUE_BRIDGE_IP")
HUE_USERNAME: str = os.getenv("HUE_USERNAME")
HUE_BRIDGE_PORT: int = int(os.getenv("HUE_BRIDGE_PORT", 80))
HUE_POLL_INTERVAL_MS: int = int(os.getenv("HUE_POLL_INTERVAL_MS", 10000))

if not HUE_USERNAME or not HUE_BRIDGE_IP:
    raise ValueError("HUE_USERNAME and HUE_BRIDGE_IP must be set")
