import asyncio
import logging
import re
from typing import Any, List, Optional, TypedDict

import httpx
from zeroconf import IPVersion, ServiceStateChange, Zeroconf
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

from .const import (
    API_PATH,
    API_PORT,
    DEFAULT_SUBNET,
    MDNS_SERVICE_TYPE,
    MDNS_TIMEOUT,
    SCAN_TIMEOUT,
)
from .exceptions import InvalidInputError

_LOGGER = logging.getLogger(__name__)

_SUBNET = re.compile(r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})$")
SERVICE_INFO_TIMEOUT = 3000  # milliseconds


class NanoleafDiscovery(TypedDict, total=False):
    """A nanoleaf device."""

    ip: str
    name: Optional[str]
    id: Optional[str]  # from the mdns txt record


def _validate_subnet(subnet: str) -> str:
    match = _SUBNET.match(subnet.strip())
    if not match or any(int(octet) > 255 for octet in match.groups()):
        raise InvalidInputError(
            f"Subnet {subnet} must be the first three octets, e.g. {DEFAULT_SUBNET}"
        )
    return subnet.strip()


class AIONanoleafScanner:
    """Finds nanoleaf devices with mdns or by probing a subnet."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._transport = transport
        self._discoveries: List[NanoleafDiscovery] = []

    @property
    def found_devices(self) -> List[NanoleafDiscovery]:
        return list(self._discoveries)

    def _add(self, discovery: NanoleafDiscovery) -> None:
        if any(found["ip"] == discovery["ip"] for found in self._discoveries):
            return
        _LOGGER.debug("discover: %s", discovery)
        self._discoveries.append(discovery)

    async def _async_resolve_service(
        self, aiozc: AsyncZeroconf, service_type: str, name: str
    ) -> None:
        info = AsyncServiceInfo(service_type, name)
        if not await info.async_request(aiozc.zeroconf, SERVICE_INFO_TIMEOUT):
            _LOGGER.debug("discover: %s did not answer", name)
            return
        addresses = [
            address
            for address in info.parsed_addresses(IPVersion.V4Only)
            if address != "127.0.0.1"
        ]
        if not addresses:
            return
        properties = info.properties or {}
        device_id = properties.get(b"id")
        instance_name = info.get_name()
        self._add(
            {
                "ip": addresses[0],
                "name": instance_name,
                "id": device_id.decode() if device_id else instance_name,
            }
        )

    async def async_discover_mdns(
        self, timeout: float = MDNS_TIMEOUT
    ) -> List[NanoleafDiscovery]:
        """Browse for the nanoleaf api service for timeout seconds."""
        aiozc = AsyncZeroconf(ip_version=IPVersion.V4Only)
        pending: List["asyncio.Task[None]"] = []

        def _on_service_state_change(
            zeroconf: Zeroconf,
            service_type: str,
            name: str,
            state_change: ServiceStateChange,
            **kwargs: Any,
        ) -> None:
            if state_change is not ServiceStateChange.Added:
                return
            pending.append(
                asyncio.ensure_future(
                    self._async_resolve_service(aiozc, service_type, name)
                )
            )

        browser = AsyncServiceBrowser(
            aiozc.zeroconf, [MDNS_SERVICE_TYPE], handlers=[_on_service_state_change]
        )
        try:
            await asyncio.sleep(timeout)
            await browser.async_cancel()
            if pending:
                await asyncio.gather(*pending)
        finally:
            await aiozc.async_close()
        return self.found_devices

    async def _async_probe(self, client: httpx.AsyncClient, ip: str) -> None:
        try:
            await client.get(f"http://{ip}:{API_PORT}{API_PATH}/")
        except httpx.HTTPError:
            return
        # the api answers unauthorized requests too, any response counts
        self._add({"ip": ip})

    async def async_scan_subnet(
        self, subnet: str = DEFAULT_SUBNET, timeout: float = SCAN_TIMEOUT
    ) -> List[NanoleafDiscovery]:
        """Probe the api port of every host of a /24 subnet."""
        subnet = _validate_subnet(subnet)
        async with httpx.AsyncClient(
            timeout=timeout,
            limits=httpx.Limits(max_connections=None),
            transport=self._transport,
        ) as client:
            await asyncio.gather(
                *(
                    self._async_probe(client, f"{subnet}.{host}")
                    for host in range(1, 255)
                )
            )
        self._discoveries.sort(key=lambda found: int(found["ip"].rsplit(".", 1)[1]))
        return self.found_devices
