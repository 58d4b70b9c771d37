"""Docker Engine API client used to inspect miner containers on a host."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import httpx

from src.data.containers.models import ContainerInfo, ContainerStats
from src.helpers.constants import DEFAULT_TIMEOUT, MINER_WORKDIR
from src.helpers.errors import ContainerRuntimeError
from src.helpers.http import create_http_client, create_tls_context
from src.helpers.logging import get_logger


if TYPE_CHECKING:
    from src.helpers.config_models import HostConfig


logger = get_logger(__name__)


class ContainerRuntime(Protocol):
    """What a host monitor needs from the container runtime of its host.

    Implementations raise ContainerRuntimeError for every failure.
    """

    async def list_containers(self) -> list[ContainerInfo]: ...

    async def exec_in_container(self, container_id: str, command: list[str]) -> bytes: ...

    async def container_stats(self, container_id: str) -> ContainerStats: ...

    async def close(self) -> None: ...


def calculate_stats(raw: dict[str, Any]) -> ContainerStats:
    """Compute CPU and memory usage from a one-shot stats response.

    CPU usage follows the docker CLI: the container's CPU time delta over the
    system CPU time delta, times the number of online CPUs. Page cache is
    not counted as used memory.

    Args:
        raw: Decoded body of ``GET /containers/{id}/stats?stream=false``

    Returns:
        ContainerStats with percentages in ``[0, 100 * cpus]``
    """
    cpu_stats = raw.get("cpu_stats") or {}
    precpu_stats = raw.get("precpu_stats") or {}

    cpu_usage = cpu_stats.get("cpu_usage") or {}
    precpu_usage = precpu_stats.get("cpu_usage") or {}
    cpu_delta = cpu_usage.get("total_usage", 0) - precpu_usage.get("total_usage", 0)
    system_delta = cpu_stats.get("system_cpu_usage", 0) - precpu_stats.get(
        "system_cpu_usage", 0
    )
    online_cpus = cpu_stats.get("online_cpus") or len(cpu_usage.get("percpu_usage") or []) or 1

    cpu_percent = 0.0
    if cpu_delta > 0 and system_delta > 0:
        cpu_percent = cpu_delta / system_delta * online_cpus * 100.0

    memory_stats = raw.get("memory_stats") or {}
    usage = memory_stats.get("usage", 0)
    details = memory_stats.get("stats") or {}
    # cgroup v2 reports inactive_file, cgroup v1 total_inactive_file
    for cache_key in ("inactive_file", "total_inactive_file"):
        if cache_key in details and details[cache_key] < usage:
            usage -= details[cache_key]
            break

    limit = memory_stats.get("limit", 0)
    memory_percent = usage / limit * 100.0 if limit else 0.0

    return ContainerStats(
        cpu_percent=round(cpu_percent, 2),
        memory_percent=round(memory_percent, 2),
        memory_usage=usage,
    )


def parse_container(raw: dict[str, Any]) -> ContainerInfo:
    """Convert an entry of ``GET /containers/json``."""
    names = raw.get("Names") or []
    name = names[0].lstrip("/") if names else raw.get("Id", "")[:12]
    return ContainerInfo(
        id=raw["Id"],
        name=name,
        image=raw.get("Image", ""),
        created=int(raw.get("Created", 0)),
    )


class DockerClient:
    """ContainerRuntime backed by the Docker Engine REST API."""

    def __init__(
        self,
        host: HostConfig,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the Docker client.

        Args:
            host: Host address, API port and optional TLS material
            timeout: Request timeout in seconds
            transport: Custom httpx transport (optional)
        """
        self.host = host.ip
        scheme = "https" if host.tls_enabled else "http"
        self.base_url = f"{scheme}://{host.ip}:{host.port}"

        kwargs: dict[str, Any] = {"base_url": self.base_url}
        if host.tls_enabled:
            kwargs["verify"] = create_tls_context(host.ca_path, host.cert_path, host.key_path)
        if transport is not None:
            kwargs["transport"] = transport
        self.client = create_http_client(timeout=timeout, **kwargs)

    async def _request(self, operation: str, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self.client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            msg = f"{operation} on {self.host} returned {e.response.status_code}"
            raise ContainerRuntimeError(msg) from e
        except httpx.HTTPError as e:
            msg = f"{operation} on {self.host} failed: {e}"
            raise ContainerRuntimeError(msg) from e
        return response

    async def list_containers(self) -> list[ContainerInfo]:
        """List running containers on the host."""
        response = await self._request("list containers", "GET", "/containers/json")
        try:
            return [parse_container(item) for item in response.json()]
        except (ValueError, KeyError, TypeError) as e:
            msg = f"unexpected container list from {self.host}: {e}"
            raise ContainerRuntimeError(msg) from e

    async def exec_in_container(self, container_id: str, command: list[str]) -> bytes:
        """Run a command in the miner working directory and return its raw output.

        The output keeps the 8-byte stream multiplexing header.
        """
        response = await self._request(
            "create exec",
            "POST",
            f"/containers/{container_id}/exec",
            json={
                "AttachStdout": True,
                "AttachStderr": True,
                "Cmd": command,
                "WorkingDir": MINER_WORKDIR,
            },
        )
        try:
            exec_id = response.json()["Id"]
        except (ValueError, KeyError, TypeError) as e:
            msg = f"unexpected exec response from {self.host}: {e}"
            raise ContainerRuntimeError(msg) from e

        response = await self._request(
            "start exec",
            "POST",
            f"/exec/{exec_id}/start",
            json={"Detach": False, "Tty": False},
        )
        return response.content

    async def container_stats(self, container_id: str) -> ContainerStats:
        """Take one resource usage sample of a container."""
        response = await self._request(
            "container stats",
            "GET",
            f"/containers/{container_id}/stats",
            params={"stream": "false"},
        )
        try:
            return calculate_stats(response.json())
        except (ValueError, TypeError) as e:
            msg = f"unexpected stats of {container_id} from {self.host}: {e}"
            raise ContainerRuntimeError(msg) from e

    async def close(self) -> None:
        await self.client.aclose()
        logger.debug("Closed Docker client for %s", self.host)


__all__ = [
    "ContainerRuntime",
    "DockerClient",
    "calculate_stats",
    "parse_container",
]
