from typing import Any, Dict, List, Optional, Protocol

import aiohttp
import requests
from loguru import logger


class BridgeError(Exception):
    """The bridge answered with an error payload"""


class BridgeClient(Protocol):
    """What the sync engine needs from a bridge connection"""

    async def list_lights(self) -> List[Dict[str, Any]]: ...

    async def list_groups(self) -> List[Dict[str, Any]]: ...

    async def set_light_state(self, light_id: str, state: Dict[str, Any]) -> Any: ...

    async def set_group_state(self, group_id: str, state: Dict[str, Any]) -> Any: ...


def _with_ids(listing: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Turn the bridge's ``{id: item}`` listing into a list of items carrying their id"""
    return [{**item, "id": str(item_id)} for item_id, item in listing.items()]


def _raise_for_errors(payload: Any) -> None:
    if isinstance(payload, list):
        errors = [
            entry["error"]
            for entry in payload
            if isinstance(entry, dict) and "error" in entry
        ]
        if errors:
            raise BridgeError(
                "; ".join(str(error.get("description", error)) for error in errors)
            )


class HueBridgeClient:
    """
    Minimal async client for the Hue bridge v1 REST API.

    A shared aiohttp session can be passed in, otherwise a session is opened
    per request.
    """

    def __init__(
        self,
        address: str,
        username: str,
        port: int = 80,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 10.0,
    ):
        self.address = address
        self.port = port
        self.base_url = f"http://{address}:{port}/api/{username}"
        self.session = session
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def _request(
        self, method: str, path: str, payload: Optional[Dict[str, Any]] = None
    ) -> Any:
        # Create a session if one wasn't provided
        should_close_session = False
        session = self.session
        if session is None:
            session = aiohttp.ClientSession(timeout=self.timeout)
            should_close_session = True

        try:
            async with session.request(
                method, f"{self.base_url}{path}", json=payload
            ) as response:
                response.raise_for_status()
                data = await response.json(content_type=None)
        finally:
            if should_close_session:
                await session.close()

        _raise_for_errors(data)
        return data

    async def list_lights(self) -> List[Dict[str, Any]]:
        """Fetch all lights known to the bridge.

        Returns:
            List[Dict[str, Any]]: Light entries, each with its bridge ``id``
        """
        lights = _with_ids(await self._request("GET", "/lights"))
        logger.debug(f"Bridge {self.address} reported {len(lights)} lights")
        return lights

    async def list_groups(self) -> List[Dict[str, Any]]:
        """Fetch all groups known to the bridge.

        Returns:
            List[Dict[str, Any]]: Group entries, each with its bridge ``id``
        """
        groups = _with_ids(await self._request("GET", "/groups"))
        logger.debug(f"Bridge {self.address} reported {len(groups)} groups")
        return groups

    async def set_light_state(self, light_id: str, state: Dict[str, Any]) -> Any:
        return await self._request("PUT", f"/lights/{light_id}/state", state)

    async def set_group_state(self, group_id: str, state: Dict[str, Any]) -> Any:
        return await self._request("PUT", f"/groups/{group_id}/action", state)


def validate_key(address: str, username: str, port: int = 80, timeout: float = 10.0) -> bool:
    """Check that the bridge accepts the API key.

    The config endpoint only includes the network settings for authorized
    users, so their presence tells a valid key from an invalid one.

    Returns:
        bool: True if the key is accepted
    """
    try:
        response = requests.get(
            f"http://{address}:{port}/api/{username}/config", timeout=timeout
        )
        response.raise_for_status()
        config = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning(f"Failed to query bridge {address}: {e}")
        return False

    return isinstance(config, dict) and "ipaddress" in config
