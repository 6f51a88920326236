#!/usr/bin/env python3
"""
Hue Light Sync - keep a live view of Philips Hue lights and groups

Polls the bridge, tracks every light and group and logs their state
as it changes.
"""

import asyncio

from hue_light_sync.main import main

if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
