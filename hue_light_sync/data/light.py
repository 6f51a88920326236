import math
import time
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple, Union

from loguru import logger
from pydantic import ValidationError

from hue_light_sync.core import colors
from hue_light_sync.core.colors import MIRED_MAX, MIRED_MIN, is_number, limit_value
from hue_light_sync.data.capabilities import (
    capability_names,
    derive_capabilities,
    has_color,
    native_color_mode,
)
from hue_light_sync.data.models import (
    Capability,
    ColorMode,
    DesiredState,
    LightCommand,
    LightEvent,
    LightInfo,
    LightState,
    RawGroup,
    RawLight,
    RawLightState,
    StateMessage,
    StatePayload,
)

# Seconds to ignore polled state after sending a command
ECHO_WINDOW_SECONDS = 2

BRIGHTNESS_MAX = 255
# The bridge accepts 1-254, 254 being 100 %
BRIDGE_BRIGHTNESS_MAX = 254
BRIGHTNESS_PER_PERCENT = BRIDGE_BRIGHTNESS_MAX / 100
HUE_MAX = 0xFFFF
SAT_MAX = 0xFF
# Saturation shown for lights in color temperature mode
TEMPERATURE_SATURATION = 0.1

Listener = Callable[[LightEvent, "LightEntity", Any], None]
RawSnapshot = Union[RawLight, RawGroup, Dict[str, Any]]

_REPORTED_MODES = {
    "xy": (ColorMode.XY, Capability.XY),
    "hs": (ColorMode.HUE_SAT, Capability.HUE_SAT),
    "ct": (ColorMode.TEMPERATURE, Capability.COLOR_TEMP),
}


class ResolvedColor(NamedTuple):
    """A color picked from a command, in both representations"""

    preferred: ColorMode
    xy: Tuple[float, float]
    hue: float
    sat: float
    # HSV value, only known when the color was given as RGB
    value: Optional[float] = None


def percent_to_brightness(percent: float) -> int:
    return int(round(limit_value(percent, 0, 100) * BRIGHTNESS_PER_PERCENT))


def brightness_to_percent(brightness: float) -> int:
    return int(round(limit_value(brightness / BRIGHTNESS_PER_PERCENT, 0, 100)))


def _reported_color_mode(colormode: Optional[str], capabilities: Capability) -> ColorMode:
    reported = _REPORTED_MODES.get(colormode or "")
    if reported and reported[1] in capabilities:
        return reported[0]

    for mode, capability in _REPORTED_MODES.values():
        if capability in capabilities:
            return mode
    return ColorMode.BRIGHTNESS


def parse_state(
    raw: RawLightState, capabilities: Capability, is_group: bool = False
) -> LightState:
    """Convert a reported state block to a normalized LightState.

    Args:
        raw: State block as reported by the bridge
        capabilities: Capabilities derived from the same block
        is_group: Groups have no reachability, they are always reachable

    Returns:
        LightState: State in device units, color fields limited to what the
        light supports
    """
    values: Dict[str, Any] = {
        "on": bool(raw.on),
        "brightness": int(round(limit_value(raw.bri, 0, BRIGHTNESS_MAX))),
        "color_mode": _reported_color_mode(raw.colormode, capabilities),
        "reachable": True if is_group or raw.reachable is None else raw.reachable,
    }

    if Capability.XY in capabilities:
        values["xy"] = (
            round(limit_value(raw.xy[0], 0.0, 1.0), 4),
            round(limit_value(raw.xy[1], 0.0, 1.0), 4),
        )
    if Capability.HUE_SAT in capabilities:
        values["hue"] = int(round(limit_value(raw.hue, 0, HUE_MAX)))
        values["sat"] = int(round(limit_value(raw.sat, 0, SAT_MAX)))
    if Capability.COLOR_TEMP in capabilities:
        values["color_temp"] = int(round(limit_value(raw.ct, MIRED_MIN, MIRED_MAX)))

    return LightState(**values)


class LightEntity:
    """
    A light or group known to the bridge.

    Holds the normalized state, applies commands to it and merges polled
    bridge state into it. Commands arm an echo window during which polled state
    is ignored, since the bridge keeps reporting the old values for a while
    after a change.

    Listeners are called with ``(event, entity, data)``:

    * ``SEND`` with the DesiredState to transmit to the bridge
    * ``CHANGE`` after a local command changed the state
    * ``UPDATE`` after polled state changed the state
    * ``WARNING`` with a message when input was rejected
    """

    def __init__(self, light_id: str, raw: RawSnapshot, is_group: bool = False):
        self.light_id = light_id
        self.is_group = is_group
        self.echo_deadline = 0.0
        self._listeners: List[Listener] = []

        parsed = self._parse_raw(raw)
        self.info = LightInfo.from_raw(parsed)
        self.capabilities = derive_capabilities(parsed.raw_state)
        self.state = parse_state(parsed.raw_state, self.capabilities, is_group)

    def __repr__(self) -> str:
        return f"<LightEntity {self.light_id} {self.info.name!r}>"

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def clear_listeners(self) -> None:
        self._listeners.clear()

    def _emit(self, event: LightEvent, data: Any = None) -> None:
        for listener in list(self._listeners):
            listener(event, self, data)

    def _warn(self, message: str, value: Any = None) -> None:
        logger.warning(f"{self.light_id}: {message}: {value!r}")
        self._emit(LightEvent.WARNING, message)

    def _parse_raw(self, raw: RawSnapshot) -> Union[RawLight, RawGroup]:
        if isinstance(raw, (RawLight, RawGroup)):
            return raw
        model = RawGroup if self.is_group else RawLight
        return model.model_validate(raw)

    @property
    def echo_suppressed(self) -> bool:
        return time.monotonic() < self.echo_deadline

    def reconcile_observed(self, raw: RawSnapshot) -> bool:
        """Merge state polled from the bridge into this light.

        Args:
            raw: Light or group entry from the bridge listing

        Returns:
            bool: True if the state changed and an UPDATE was emitted
        """
        if self.echo_suppressed:
            logger.debug(f"{self.light_id}: ignoring polled state inside echo window")
            return False

        try:
            parsed = self._parse_raw(raw)
        except ValidationError as e:
            self._warn(f"Invalid state from bridge ({e.error_count()} errors)", raw)
            return False

        self.capabilities = derive_capabilities(parsed.raw_state)
        observed = parse_state(parsed.raw_state, self.capabilities, self.is_group)
        self.info = LightInfo.from_raw(parsed)

        values_changed = not self.state.same_values(observed)
        reachable_changed = observed.reachable != self.state.reachable
        if not (values_changed or reachable_changed):
            return False

        self.state = observed
        self._emit(LightEvent.UPDATE)
        return True

    def apply_command(self, command: Any) -> Optional[DesiredState]:
        """Apply a command to the light and emit the state to send to the bridge.

        Accepts a bool (on/off), ``"on"``/``"off"``, a number (on at that
        brightness percentage) or a mapping with color, temperature and
        brightness fields.

        Args:
            command: The command in any of the supported shapes

        Returns:
            DesiredState: What was sent, or None if the command was rejected
        """
        parsed = self._coerce_command(command)
        if parsed is None:
            return None

        changes = self._resolve_changes(parsed)
        if changes is None:
            self._warn("Command has nothing to apply", command)
            return None

        self.state = self.state.model_copy(update=changes)

        self.echo_deadline = time.monotonic() + ECHO_WINDOW_SECONDS
        if is_number(parsed.duration) and parsed.duration > 0:
            self.echo_deadline += math.ceil(parsed.duration / 1000)

        desired = self._build_desired_state(parsed)
        self._emit(LightEvent.SEND, desired)
        self._emit(LightEvent.CHANGE)
        return desired

    def _coerce_command(self, command: Any) -> Optional[LightCommand]:
        if isinstance(command, LightCommand):
            return command

        if isinstance(command, bool):
            data = {"on": command}
        elif isinstance(command, str) and command in ("on", "off"):
            data = {"on": command == "on"}
        elif is_number(command):
            data = {"on": True, "bri": command}
        elif isinstance(command, dict):
            data = command
        else:
            self._warn("Unhandled input", command)
            return None

        try:
            return LightCommand.model_validate(data)
        except ValidationError as e:
            self._warn(f"Invalid command ({e.error_count()} errors)", command)
            return None

    def _resolve_changes(self, command: LightCommand) -> Optional[Dict[str, Any]]:
        changes: Dict[str, Any] = {}

        color = self._resolve_color(command)
        if color is not None:
            changes.update(self._color_changes(color))
        else:
            mired = self._resolve_temperature(command)
            if mired is not None:
                changes["color_mode"] = ColorMode.TEMPERATURE
                changes["color_temp"] = mired

        brightness = self._resolve_brightness(command, color)
        if brightness is not None:
            changes["brightness"] = brightness

        if command.on is not None:
            changes["on"] = command.on

        if not changes and command.alert is None and command.effect is None:
            return None
        return changes

    def _resolve_color(self, command: LightCommand) -> Optional[ResolvedColor]:
        if not has_color(self.capabilities):
            return None

        color = None
        xy = command.xy
        if isinstance(xy, list) and len(xy) == 2 and all(is_number(v) for v in xy):
            color = self._color_from_xy(xy)

        elif is_number(command.x) or is_number(command.y):
            current = self._current_xy()
            color = self._color_from_xy(
                (
                    command.x if is_number(command.x) else current[0],
                    command.y if is_number(command.y) else current[1],
                )
            )

        elif is_number(command.hue):
            hue = limit_value(command.hue, 0.0, 360.0) % 360.0
            _, sat = self._current_hue_sat()
            color = self._color_from_hue_sat(hue, sat, ColorMode.HUE_SAT)

        elif (
            isinstance(command.rgb, list)
            and len(command.rgb) == 3
            and all(is_number(v) for v in command.rgb)
        ):
            color = self._color_from_rgb(command.rgb)

        elif any(is_number(v) for v in (command.red, command.green, command.blue)):
            rgb = list(colors.hsv_to_rgb(self._current_hsv()))
            for index, value in enumerate((command.red, command.green, command.blue)):
                if is_number(value):
                    rgb[index] = value
            color = self._color_from_rgb(rgb)

        elif colors.hex_to_rgb(command.hex) is not None:
            color = self._color_from_rgb(colors.hex_to_rgb(command.hex))

        saturation = command.sat if is_number(command.sat) else command.saturation
        if is_number(saturation):
            if color is None:
                hue, _ = self._current_hue_sat()
                color = self._color_from_hue_sat(hue, 0.0, self._current_native_mode())
            sat = limit_value(saturation, 0.0, 100.0) / 100
            adjusted = self._color_from_hue_sat(color.hue, sat, color.preferred)
            color = adjusted._replace(value=color.value)

        return color

    def _color_from_xy(self, xy) -> ResolvedColor:
        xy = (limit_value(xy[0], 0.0, 1.0), limit_value(xy[1], 0.0, 1.0))
        hue, sat, _ = colors.rgb_to_hsv(colors.xy_to_rgb(xy))
        return ResolvedColor(ColorMode.XY, xy, hue, sat)

    def _color_from_hue_sat(self, hue: float, sat: float, preferred: ColorMode) -> ResolvedColor:
        xy = colors.rgb_to_xy(colors.hsv_to_rgb((hue, sat, 1.0)))
        return ResolvedColor(preferred, xy, hue, sat)

    def _color_from_rgb(self, rgb) -> ResolvedColor:
        rgb = [limit_value(v, 0, 255) for v in rgb]
        hue, sat, value = colors.rgb_to_hsv(rgb)
        return ResolvedColor(ColorMode.XY, colors.rgb_to_xy(rgb), hue, sat, value)

    def _color_changes(self, color: ResolvedColor) -> Dict[str, Any]:
        """Write a color in the light's native representation plus its mirror"""
        changes: Dict[str, Any] = {
            "color_mode": native_color_mode(self.capabilities, color.preferred)
        }
        if Capability.XY in self.capabilities:
            changes["xy"] = (round(color.xy[0], 4), round(color.xy[1], 4))
        if Capability.HUE_SAT in self.capabilities:
            changes["hue"] = int(limit_value(round(color.hue / 360 * HUE_MAX), 0, HUE_MAX))
            changes["sat"] = int(round(limit_value(color.sat, 0.0, 1.0) * SAT_MAX))
        return changes

    def _resolve_temperature(self, command: LightCommand) -> Optional[int]:
        if Capability.COLOR_TEMP not in self.capabilities:
            return None

        mired = next(
            (v for v in (command.ct, command.mirek, command.mired) if is_number(v)),
            None,
        )
        if mired is None and is_number(command.kelvin):
            mired = colors.kelvin_to_mired(command.kelvin)
        if mired is None:
            return None
        return int(round(limit_value(mired, MIRED_MIN, MIRED_MAX)))

    def _resolve_brightness(
        self, command: LightCommand, color: Optional[ResolvedColor]
    ) -> Optional[int]:
        percent = command.bri if is_number(command.bri) else command.brightness
        if is_number(percent):
            return percent_to_brightness(percent)
        if color is not None and color.value is not None:
            return int(round(limit_value(color.value, 0.0, 1.0) * BRIGHTNESS_MAX))
        return None

    def _build_desired_state(self, command: LightCommand) -> DesiredState:
        state = self.state
        values: Dict[str, Any] = {
            "target_id": self.info.id,
            "is_group": self.is_group,
            "on": state.on,
            "alert": command.alert,
            "effect": command.effect,
        }

        if state.on:
            values["bri"] = int(limit_value(state.brightness, 0, BRIDGE_BRIGHTNESS_MAX))
            if state.color_mode == ColorMode.XY:
                values["xy"] = state.xy
            elif state.color_mode == ColorMode.HUE_SAT:
                values["hue"] = state.hue
                values["sat"] = state.sat
            elif state.color_mode == ColorMode.TEMPERATURE:
                values["ct"] = state.color_temp

        if is_number(command.duration) and command.duration > 0:
            # Transition time is in steps of 100 ms
            values["transitiontime"] = int(round(command.duration / 100))

        return DesiredState(**values)

    def _current_native_mode(self) -> ColorMode:
        if self.state.color_mode == ColorMode.HUE_SAT:
            return ColorMode.HUE_SAT
        return ColorMode.XY

    def _current_hue_sat(self) -> Tuple[float, float]:
        """Hue (degrees) and saturation (0-1) of the current color"""
        state = self.state
        hs = (
            (state.hue / HUE_MAX * 360 % 360.0, state.sat / SAT_MAX)
            if state.hue is not None and state.sat is not None
            else None
        )

        if state.color_mode == ColorMode.HUE_SAT and hs:
            return hs
        if state.color_mode == ColorMode.XY and state.xy:
            hue, sat, _ = colors.rgb_to_hsv(colors.xy_to_rgb(state.xy))
            return hue, sat
        if state.color_mode == ColorMode.TEMPERATURE and state.color_temp:
            rgb = colors.temperature_to_rgb(colors.mired_to_kelvin(state.color_temp))
            hue, _, _ = colors.rgb_to_hsv(rgb)
            return hue, TEMPERATURE_SATURATION

        if hs:
            return hs
        if state.xy:
            hue, sat, _ = colors.rgb_to_hsv(colors.xy_to_rgb(state.xy))
            return hue, sat
        return 0.0, 0.0

    def _current_hsv(self) -> Tuple[float, float, float]:
        hue, sat = self._current_hue_sat()
        return hue, sat, limit_value(self.state.brightness / BRIGHTNESS_MAX, 0.0, 1.0)

    def _current_xy(self) -> Tuple[float, float]:
        if self.state.color_mode == ColorMode.XY and self.state.xy:
            return self.state.xy
        hue, sat = self._current_hue_sat()
        return colors.rgb_to_xy(colors.hsv_to_rgb((hue, sat, 1.0)))

    def get_state_message(self, event: Optional[str] = None) -> StateMessage:
        """Build the externally visible state of this light.

        Colors are always reported as xy, hsv and rgb, whatever the light
        natively uses. Brightness and the hsv value are percentages.

        Args:
            event: Optional event tag (``new``, ``change``, ``update``)

        Returns:
            StateMessage: Snapshot of the light
        """
        state = self.state
        percent = brightness_to_percent(state.brightness)
        hue, sat = self._current_hue_sat()
        xy = self._current_xy()
        rgb = colors.hsv_to_rgb((hue, sat, percent / 100))

        payload = StatePayload(
            on=state.on,
            reachable=state.reachable,
            colormode=state.color_mode,
            bri=percent,
            xy=(round(xy[0], 4), round(xy[1], 4)),
            hsv=(int(round(hue)) % 360, int(round(sat * 100)), percent),
            rgb=rgb,
            hex=colors.rgb_to_hex(rgb),
            color=colors.rgb_to_name(rgb),
            capabilities=capability_names(self.capabilities),
        )

        # Only for lights that have color temperature
        if Capability.COLOR_TEMP in self.capabilities and state.color_temp:
            payload.mired = state.color_temp
            payload.kelvin = int(round(colors.mired_to_kelvin(state.color_temp)))

        return StateMessage(
            id=self.light_id,
            type="group" if self.is_group else "light",
            name=self.info.name,
            uniqueid=None if self.is_group else self.info.unique_id,
            info=self.info.model_copy(deep=True),
            payload=payload,
            state=state.model_copy(),
            event=event,
        )
