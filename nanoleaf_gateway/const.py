"""Nanoleaf Gateway constants."""

from enum import Enum
from typing import Final


class StreamingVersion(Enum):
    V1 = 1
    V2 = 2


API_PORT: Final = 16021
API_PATH: Final = "/api/v1"

STREAMING_PORTS = {
    StreamingVersion.V1: 60221,
    StreamingVersion.V2: 60222,
}
EXT_CONTROL_VERSIONS = {
    StreamingVersion.V1: "v1",
    StreamingVersion.V2: "v2",
}

# Light Panels (Aurora) only speak the first external control protocol
MODEL_LEGACY_V1: Final = "NL22"

# Shape type of the non emitting controller units
SHAPE_TYPE_CONTROLLER: Final = 12

REQUEST_TIMEOUT: Final = 10
SCAN_TIMEOUT: Final = 0.5
MDNS_TIMEOUT: Final = 10

MDNS_SERVICE_TYPE: Final = "_nanoleafapi._tcp.local."
DEFAULT_SUBNET: Final = "192.168.1"

# Effect names the firmware reports while panels show a static color
EFFECT_SOLID: Final = "*Solid*"
EFFECT_STATIC: Final = "*Static*"
STATIC_EFFECTS = {EFFECT_SOLID, EFFECT_STATIC}

# Clamp domains of the state API
MIN_BRIGHTNESS: Final = 0
MAX_BRIGHTNESS: Final = 100
MIN_HUE: Final = 0
MAX_HUE: Final = 360
MIN_SATURATION: Final = 0
MAX_SATURATION: Final = 100
MIN_TEMP: Final = 1200
MAX_TEMP: Final = 6500

# State keys as the device names them
STATE_ON: Final = "on"
STATE_BRIGHTNESS: Final = "brightness"
STATE_HUE: Final = "hue"
STATE_SATURATION: Final = "sat"
STATE_COLOR_TEMP: Final = "ct"

# Device summary statuses
STATUS_ON: Final = "on"
STATUS_OFF: Final = "off"
STATUS_UNREACHABLE: Final = "unreachable"

# Plugin UUIDs of the built in animation styles
PLUGIN_UUIDS = {
    "flow": "027842e4-e1d6-4a4c-a731-be74a1ebd4cf",
    "wheel": "6970681a-20b5-4c5e-8813-bdaebc4ee4fa",
    "fade": "b3fd723a-aae8-4c99-bf2b-087159e0ef53",
    "highlight": "70b7c636-6bf8-491f-89c1-f4103508d642",
    "random": "ba632d3e-9c2b-4413-a965-510c839b3f71",
    "explode": "713518c1-d560-47db-8991-de780af71d1e",
}

# transTime and delayTime in tenths of a second
ANIMATION_SPEEDS = {
    "very_slow": (100, 100),
    "slow": (50, 50),
    "medium": (25, 25),
    "fast": (10, 10),
    "very_fast": (3, 3),
}
DEFAULT_ANIMATION_SPEED: Final = "medium"

DIRECTION_RIGHT: Final = "right"

DEFAULT_HOST: Final = "0.0.0.0"
DEFAULT_PORT: Final = 3101
