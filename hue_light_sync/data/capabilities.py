from typing import Any, Dict, List, Optional, Union

from hue_light_sync.core.colors import is_number
from hue_light_sync.data.models import Capability, ColorMode, RawLightState


def derive_capabilities(raw: Union[RawLightState, Dict[str, Any], None]) -> Capability:
    """Work out which color representations a light supports from its reported state.

    Brightness is always supported, everything else depends on the fields the
    bridge reports (and whether they hold usable numbers).

    Args:
        raw: Reported state block, either parsed or as a plain dict

    Returns:
        Capability: Combined capability flags
    """
    if isinstance(raw, RawLightState):
        fields = raw.model_dump()
    elif isinstance(raw, dict):
        fields = raw
    else:
        fields = {}

    capabilities = Capability.BRIGHTNESS

    xy = fields.get("xy")
    if isinstance(xy, (list, tuple)) and len(xy) == 2 and all(is_number(v) for v in xy):
        capabilities |= Capability.XY

    if is_number(fields.get("hue")) and is_number(fields.get("sat")):
        capabilities |= Capability.HUE_SAT

    if is_number(fields.get("ct")):
        capabilities |= Capability.COLOR_TEMP

    return capabilities


def capability_names(capabilities: Capability) -> List[str]:
    return [c.name.lower() for c in Capability if c in capabilities]


def has_color(capabilities: Capability) -> bool:
    return bool(capabilities & (Capability.XY | Capability.HUE_SAT))


def native_color_mode(
    capabilities: Capability, preferred: ColorMode = ColorMode.XY
) -> Optional[ColorMode]:
    """
    Pick the color mode a color should be written in.

    The preferred mode wins when the device supports it, otherwise the color is
    transcoded to the other representation. None when the light has no color.
    """
    supported = []
    if Capability.XY in capabilities:
        supported.append(ColorMode.XY)
    if Capability.HUE_SAT in capabilities:
        supported.append(ColorMode.HUE_SAT)

    if not supported:
        return None
    if preferred in supported:
        return preferred
    return supported[0]
