"""Maps aliases and IP addresses to device connections."""

import asyncio
from dataclasses import dataclass, field
import logging
from typing import Dict, Iterator, List, Optional, Set, Union

import httpx

from .aiodevice import AIONanoleafDevice
from .const import STATUS_OFF, STATUS_ON, STATUS_UNREACHABLE
from .exceptions import (
    AmbiguousSelectionError,
    DeviceNotFoundError,
    DuplicateAliasError,
    NanoleafError,
    NotConfiguredError,
)

_LOGGER = logging.getLogger(__name__)


@dataclass
class RegisteredDevice:
    alias: str
    ip: str
    auth_token: str
    device: AIONanoleafDevice = field(repr=False)
    name: Optional[str] = None
    model: Optional[str] = None

    @property
    def key(self) -> str:
        return self.alias.lower()

    def as_dict(self) -> Dict[str, Optional[str]]:
        return {
            "alias": self.alias,
            "ip": self.ip,
            "name": self.name,
            "model": self.model,
        }


class DeviceRegistry:
    """The devices a gateway process controls.

    Keys are lower cased aliases. An alias defaults to the IP address and
    is upgraded to the hardware name once by async_refresh_names.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._transport = transport
        self._devices: Dict[str, RegisteredDevice] = {}
        self._refresh_lock = asyncio.Lock()
        self._closing: Set["asyncio.Future[None]"] = set()

    def __len__(self) -> int:
        return len(self._devices)

    def __iter__(self) -> Iterator[RegisteredDevice]:
        return iter(list(self._devices.values()))

    @property
    def aliases(self) -> List[str]:
        return [entry.alias for entry in self._devices.values()]

    def register(
        self, ip: str, auth_token: str, alias: Optional[str] = None
    ) -> RegisteredDevice:
        """Add a device without checking that it can be reached.

        A device already registered under the same alias is replaced.
        """
        alias = alias or ip
        key = alias.lower()
        if any(
            entry.ip == ip and entry.key != key for entry in self._devices.values()
        ):
            _LOGGER.warning("%s: Registered more than once, as %s", ip, alias)
        return self._add(alias, self.create_device(ip, auth_token))

    def _add(self, alias: str, device: AIONanoleafDevice) -> RegisteredDevice:
        key = alias.lower()
        replaced = self._devices.get(key)
        if replaced is not None:
            _LOGGER.debug("%s: Replacing registration of %s", replaced.ip, alias)
            self._close_later(replaced)
        entry = RegisteredDevice(
            alias=alias, ip=device.ipaddr, auth_token=device.auth_token, device=device
        )
        self._devices[key] = entry
        return entry

    def create_device(self, ip: str, auth_token: str) -> AIONanoleafDevice:
        """A connection that is not registered."""
        return AIONanoleafDevice(ip, auth_token, transport=self._transport)

    async def async_register_verified(
        self, ip: str, auth_token: str, alias: Optional[str] = None
    ) -> RegisteredDevice:
        """Fetch the device info, then register under alias or the hardware name."""
        device = self.create_device(ip, auth_token)
        try:
            info = await device.async_get_info()
            alias = alias or info.name or ip
            if self.has(alias):
                raise DuplicateAliasError(alias)
        except NanoleafError:
            await device.async_stop()
            raise
        entry = self._add(alias, device)
        entry.name = info.name
        entry.model = info.model
        return entry

    async def async_check_credentials(
        self, ip: str, auth_token: str
    ) -> Dict[str, Union[str, int, None]]:
        """Summarize a device that does not have to be registered."""
        device = self.create_device(ip, auth_token)
        try:
            return await device.async_test_connection()
        finally:
            await device.async_stop()

    def remove(self, alias: str) -> bool:
        entry = self._devices.pop(alias.lower(), None)
        if entry is None:
            return False
        self._close_later(entry)
        return True

    def _close_later(self, entry: RegisteredDevice) -> None:
        if not _loop_running():
            return
        task = asyncio.ensure_future(entry.device.async_stop())
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    def has(self, alias: str) -> bool:
        return alias.lower() in self._devices

    def list_all(self) -> List[RegisteredDevice]:
        return list(self._devices.values())

    def resolve(self, identifier: Optional[str] = None) -> RegisteredDevice:
        """Find the device an alias or IP address refers to.

        Without an identifier the only registered device is returned.
        """
        if not self._devices:
            raise NotConfiguredError()
        if not identifier:
            if len(self._devices) == 1:
                return next(iter(self._devices.values()))
            raise AmbiguousSelectionError(self.aliases)
        entry = self._devices.get(identifier.lower())
        if entry is not None:
            return entry
        for entry in self._devices.values():
            if entry.ip == identifier:
                return entry
        raise DeviceNotFoundError(identifier, self.aliases)

    async def async_refresh_names(self) -> None:
        """Fetch the hardware name of every device, ignoring failures."""
        async with self._refresh_lock:
            for entry in list(self._devices.values()):
                try:
                    info = await entry.device.async_get_info()
                except NanoleafError as ex:
                    _LOGGER.debug("%s: Name refresh failed: %s", entry.ip, ex)
                    continue
                entry.name = info.name
                entry.model = info.model
                if entry.alias != entry.ip or not info.name:
                    continue
                new_key = info.name.lower()
                if new_key in self._devices:
                    continue
                del self._devices[entry.key]
                entry.alias = info.name
                self._devices[new_key] = entry
                _LOGGER.debug("%s: Alias is now %s", entry.ip, entry.alias)

    async def async_list_status(self) -> List[Dict[str, Optional[str]]]:
        """Summaries of every device with its power status.

        A device that cannot be reached is reported as unreachable.
        """

        async def _async_status(entry: RegisteredDevice) -> Dict[str, Optional[str]]:
            summary = entry.as_dict()
            try:
                info = await entry.device.async_get_info()
            except NanoleafError as ex:
                _LOGGER.debug("%s: Status unavailable: %s", entry.ip, ex)
                summary["status"] = STATUS_UNREACHABLE
            else:
                summary["status"] = STATUS_ON if info.state.is_on else STATUS_OFF
            return summary

        return list(
            await asyncio.gather(*(_async_status(entry) for entry in self.list_all()))
        )

    async def async_stop(self) -> None:
        """Close every device connection."""
        await asyncio.gather(*(entry.device.async_stop() for entry in self.list_all()))


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True
