from enum import Enum, IntFlag
from typing import Annotated, Any, Dict, List, Optional, Tuple, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StrictBool,
)
from typing_extensions import Self

# Bridges report ids as strings, some clients hand them over as ints
BridgeId = Annotated[str, BeforeValidator(str)]


class Capability(IntFlag):
    """Color control representations a light supports"""

    BRIGHTNESS = 1
    XY = 2
    HUE_SAT = 4
    COLOR_TEMP = 8


class ColorMode(str, Enum):
    BRIGHTNESS = "bri"
    XY = "xy"
    HUE_SAT = "hs"
    TEMPERATURE = "ct"


class LightEvent(str, Enum):
    """Events a LightEntity emits to its listeners"""

    CHANGE = "change"
    UPDATE = "update"
    SEND = "send"
    WARNING = "warning"


class RawLightState(BaseModel):
    """
    State block of a light (``state``) or group (``action``) as reported by
    the bridge.

    Fields are optional since reporting differs per device type; anything not
    listed here is ignored.
    """

    model_config = ConfigDict(extra="ignore")

    on: Optional[bool] = None
    bri: Optional[float] = None
    hue: Optional[float] = None
    sat: Optional[float] = None
    xy: Optional[List[float]] = None
    ct: Optional[float] = None
    colormode: Optional[str] = None
    reachable: Optional[bool] = None
    alert: Optional[str] = None
    effect: Optional[str] = None


class RawLight(BaseModel):
    """A single entry of the bridge light listing"""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: BridgeId
    name: str = ""
    type: Optional[str] = None
    uniqueid: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("uniqueid", "uniqueId")
    )
    modelid: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("modelid", "modelId")
    )
    manufacturername: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("manufacturername", "manufacturerName"),
    )
    state: RawLightState = RawLightState()

    @property
    def raw_state(self) -> RawLightState:
        return self.state


class RawGroup(BaseModel):
    """A single entry of the bridge group listing"""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: BridgeId
    name: str = ""
    type: Optional[str] = None
    group_class: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("class", "group_class")
    )
    lights: List[BridgeId] = []
    action: RawLightState = RawLightState()

    @property
    def raw_state(self) -> RawLightState:
        return self.action


class LightInfo(BaseModel):
    """Descriptive metadata for a light or group"""

    id: BridgeId
    name: str = ""
    type: Optional[str] = None
    model_id: Optional[str] = None
    unique_id: Optional[str] = None
    manufacturer: Optional[str] = None
    group_class: Optional[str] = None
    lights: List[BridgeId] = []

    @classmethod
    def from_raw(cls, raw: Union[RawLight, RawGroup]) -> Self:
        if isinstance(raw, RawGroup):
            return cls(
                id=raw.id,
                name=raw.name,
                type=raw.type,
                group_class=raw.group_class,
                lights=list(raw.lights),
            )
        return cls(
            id=raw.id,
            name=raw.name,
            type=raw.type,
            model_id=raw.modelid,
            unique_id=raw.uniqueid,
            manufacturer=raw.manufacturername,
        )


class LightState(BaseModel):
    """
    Normalized light state in device units.

    Only the fields matching ``color_mode`` are authoritative, the other color
    fields mirror them when the device supports that representation.
    """

    on: bool = False
    brightness: int = 0
    color_mode: ColorMode = ColorMode.BRIGHTNESS
    xy: Optional[Tuple[float, float]] = None
    hue: Optional[int] = None
    sat: Optional[int] = None
    color_temp: Optional[int] = None
    reachable: bool = True

    def same_values(self, other: "LightState") -> bool:
        """Compare everything except reachability"""
        return self.model_dump(exclude={"reachable"}) == other.model_dump(
            exclude={"reachable"}
        )


class LightCommand(BaseModel):
    """
    Structured command accepted by LightEntity.apply_command.

    Numeric fields are left unbounded here; clamping happens when the command
    is applied so out of range values degrade instead of failing.
    """

    model_config = ConfigDict(extra="ignore")

    on: Optional[StrictBool] = None
    hue: Optional[float] = None
    sat: Optional[float] = None
    saturation: Optional[float] = None
    xy: Optional[List[Any]] = None
    x: Optional[float] = None
    y: Optional[float] = None
    red: Optional[float] = None
    green: Optional[float] = None
    blue: Optional[float] = None
    rgb: Optional[List[Any]] = None
    hex: Optional[str] = None
    ct: Optional[float] = None
    mired: Optional[float] = None
    mirek: Optional[float] = None
    kelvin: Optional[float] = None
    bri: Optional[float] = None
    brightness: Optional[float] = None
    duration: Optional[float] = None
    alert: Optional[str] = None
    effect: Optional[str] = None


class DesiredState(BaseModel):
    """State sent to the bridge for a light or group"""

    target_id: str = Field(exclude=True)
    is_group: bool = Field(default=False, exclude=True)

    on: bool
    bri: Optional[int] = None
    xy: Optional[Tuple[float, float]] = None
    hue: Optional[int] = None
    sat: Optional[int] = None
    ct: Optional[int] = None
    transitiontime: Optional[int] = None
    alert: Optional[str] = None
    effect: Optional[str] = None

    def to_bridge(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class StatePayload(BaseModel):
    """Externally visible state, brightness and saturation in percent"""

    on: bool
    reachable: bool
    colormode: ColorMode
    bri: int
    xy: Tuple[float, float]
    hsv: Tuple[int, int, int]
    rgb: Tuple[int, int, int]
    hex: str
    color: str
    mired: Optional[int] = None
    kelvin: Optional[int] = None
    capabilities: List[str] = []


class StateMessage(BaseModel):
    id: str
    type: str
    name: str
    uniqueid: Optional[str] = None
    info: LightInfo
    payload: StatePayload
    state: LightState
    event: Optional[str] = None


class KnownDevice(BaseModel):
    id: str
    hue_id: str
    name: str


class DeviceListing(BaseModel):
    lights: List[KnownDevice] = []
    groups: List[KnownDevice] = []
