"""Gateway configuration from the environment."""

from dataclasses import dataclass, field
import logging
import os
from typing import List, Mapping, NamedTuple, Optional

from .const import DEFAULT_HOST, DEFAULT_PORT
from .exceptions import InvalidInputError

_LOGGER = logging.getLogger(__name__)

ENV_DEVICES = "NANOLEAF_DEVICES"
ENV_IP = "NANOLEAF_IP"
ENV_AUTH_TOKEN = "NANOLEAF_AUTH_TOKEN"
ENV_HOST = "HOST"
ENV_PORT = "PORT"
ENV_LOG_LEVEL = "NANOLEAF_LOG_LEVEL"


class DeviceEntry(NamedTuple):
    ip: str
    auth_token: str
    alias: Optional[str] = None


def parse_device_entry(entry: str) -> DeviceEntry:
    """Parse [alias=]ip:token.

    living room=192.168.1.20:AbCdEf
    """
    alias: Optional[str] = None
    entry = entry.strip()
    if "=" in entry:
        alias, _, entry = entry.partition("=")
        alias = alias.strip() or None
    ip, sep, auth_token = entry.partition(":")
    ip = ip.strip()
    auth_token = auth_token.strip()
    if not sep or not ip or not auth_token:
        raise InvalidInputError(
            f"Device entry {entry!r} must look like [alias=]ip:token"
        )
    return DeviceEntry(ip, auth_token, alias)


def parse_devices(value: str) -> List[DeviceEntry]:
    """Parse a comma separated list of device entries."""
    return [parse_device_entry(part) for part in value.split(",") if part.strip()]


@dataclass
class GatewayConfig:
    devices: List[DeviceEntry] = field(default_factory=list)
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GatewayConfig":
        env = os.environ if environ is None else environ
        devices = parse_devices(env.get(ENV_DEVICES, ""))
        legacy_ip = env.get(ENV_IP, "").strip()
        legacy_token = env.get(ENV_AUTH_TOKEN, "").strip()
        if legacy_ip and legacy_token:
            if any(device.ip == legacy_ip for device in devices):
                _LOGGER.debug("%s: Already listed in %s", legacy_ip, ENV_DEVICES)
            else:
                devices.append(DeviceEntry(legacy_ip, legacy_token))
        elif legacy_ip or legacy_token:
            _LOGGER.warning(
                "Ignoring %s, both %s and %s must be set",
                ENV_IP if legacy_ip else ENV_AUTH_TOKEN,
                ENV_IP,
                ENV_AUTH_TOKEN,
            )
        port = env.get(ENV_PORT, "").strip()
        try:
            port_num = int(port) if port else DEFAULT_PORT
        except ValueError as ex:
            raise InvalidInputError(f"{ENV_PORT} must be a number, got {port}") from ex
        return cls(
            devices=devices,
            host=env.get(ENV_HOST, "").strip() or DEFAULT_HOST,
            port=port_num,
            log_level=env.get(ENV_LOG_LEVEL, "").strip() or None,
        )
