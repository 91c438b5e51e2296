"""Init file for Nanoleaf Gateway"""
from .aiodevice import AIONanoleafDevice
from .aioscanner import AIONanoleafScanner
from .config import GatewayConfig
from .exceptions import ErrorKind, NanoleafError
from .registry import DeviceRegistry, RegisteredDevice
from .utils import HSBColor, RGBColor

__all__ = [
    "AIONanoleafDevice",
    "AIONanoleafScanner",
    "DeviceRegistry",
    "ErrorKind",
    "GatewayConfig",
    "HSBColor",
    "NanoleafError",
    "RGBColor",
    "RegisteredDevice",
]
