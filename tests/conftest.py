import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

# Add the parent directory to sys.path so we can import the project modules
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture
def extended_color_light():
    """Fixture to provide a bridge entry for a full color light (xy, hue/sat and ct)"""
    return {
        "id": "1",
        "name": "Living Room Light 1",
        "type": "Extended color light",
        "modelid": "LCT015",
        "manufacturername": "Signify Netherlands B.V.",
        "uniqueid": "00:17:88:01:00:aa:bb:01-0b",
        "state": {
            "on": True,
            "bri": 254,
            "hue": 8418,
            "sat": 140,
            "xy": [0.4573, 0.41],
            "ct": 366,
            "colormode": "ct",
            "reachable": True,
            "alert": "none",
            "effect": "none",
        },
    }


@pytest.fixture
def hue_sat_light():
    """Fixture to provide a light that only reports hue and saturation"""
    return {
        "id": "2",
        "name": "Desk Strip",
        "type": "Color light",
        "modelid": "LST001",
        "uniqueid": "00:17:88:01:00:aa:bb:02-0b",
        "state": {
            "on": True,
            "bri": 1,
            "hue": 0,
            "sat": 0,
            "colormode": "hs",
            "reachable": True,
        },
    }


@pytest.fixture
def xy_light():
    """Fixture to provide a light that only reports xy"""
    return {
        "id": "3",
        "name": "Hallway",
        "type": "Color light",
        "modelid": "LLC020",
        "uniqueid": "00:17:88:01:00:aa:bb:03-0b",
        "state": {
            "on": False,
            "bri": 127,
            "xy": [0.3227, 0.329],
            "colormode": "xy",
            "reachable": True,
        },
    }


@pytest.fixture
def temperature_light():
    """Fixture to provide a tunable white light"""
    return {
        "id": "4",
        "name": "Kitchen",
        "type": "Color temperature light",
        "modelid": "LTW001",
        "uniqueid": "00:17:88:01:00:aa:bb:04-0b",
        "state": {"on": True, "bri": 200, "ct": 300, "colormode": "ct", "reachable": True},
    }


@pytest.fixture
def dimmable_light():
    """Fixture to provide a brightness only light"""
    return {
        "id": "5",
        "name": "Porch",
        "type": "Dimmable light",
        "modelid": "LWB010",
        "uniqueid": "00:17:88:01:00:aa:bb:05-0b",
        "state": {"on": False, "bri": 100, "reachable": False},
    }


@pytest.fixture
def living_room_group():
    """Fixture to provide a room group"""
    return {
        "id": "1",
        "name": "Living Room",
        "type": "Room",
        "class": "Living room",
        "lights": ["1", "2"],
        "action": {
            "on": True,
            "bri": 200,
            "hue": 8418,
            "sat": 140,
            "xy": [0.4573, 0.41],
            "ct": 366,
            "colormode": "xy",
        },
    }


@pytest.fixture
def all_lights_group():
    """Fixture to provide the bridge's group 0"""
    return {
        "id": "0",
        "name": "Lightset 0",
        "type": "LightGroup",
        "lights": ["1", "2", "3"],
        "action": {"on": False, "bri": 0},
    }


@pytest.fixture
def mock_bridge_client(extended_color_light, hue_sat_light, living_room_group, all_lights_group):
    """Fixture to provide a bridge client returning a fixed listing"""
    client = AsyncMock()
    client.list_lights = AsyncMock(return_value=[extended_color_light, hue_sat_light])
    client.list_groups = AsyncMock(return_value=[all_lights_group, living_room_group])
    client.set_light_state = AsyncMock(return_value=[])
    client.set_group_state = AsyncMock(return_value=[])
    return client


@pytest.fixture
def mock_env_config():
    """Mock environment configuration"""
    with patch.dict(
        os.environ,
        {
            "HUE_BRIDGE_IP": "192.168.1.165",
            "HUE_USERNAME": "testuser",
            "HUE_BRIDGE_PORT": "8080",
            "HUE_POLL_INTERVAL_MS": "2500",
        },
    ):
        yield
