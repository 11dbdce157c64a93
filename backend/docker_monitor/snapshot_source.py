"""
Snapshot Source for compose-status
Lists running compose containers through the Docker SDK
"""

import logging
from typing import Dict, List, Optional

import docker
from docker import DockerClient
from requests.exceptions import RequestException

from config.settings import StatusSettings
from docker_monitor.errors import SourceUnavailable
from models.status_models import ObservedUnit
from utils.async_docker import async_containers_list, async_docker_call

logger = logging.getLogger(__name__)


def parse_networks(attrs: dict) -> Dict[str, str]:
    """
    Map network name -> IP address from a container list entry.

    Networks without an assigned address (e.g. host networking) are skipped.
    """
    networks = (attrs.get('NetworkSettings') or {}).get('Networks') or {}
    result = {}
    for name, network in networks.items():
        ip = (network or {}).get('IPAddress')
        if ip:
            result[name] = ip
    return result


def parse_display_name(attrs: dict) -> Optional[str]:
    """First container name without Docker's leading slash"""
    names = attrs.get('Names') or []
    if not names:
        return None
    return names[0].lstrip('/')


class DockerSnapshotSource:
    """Produces one ObservedUnit per running container that carries a project label"""

    def __init__(self, client: Optional[DockerClient], settings: StatusSettings):
        # None means connect on first use from DOCKER_HOST / DOCKER_CERT_PATH etc.
        self.client = client
        self.project_label = settings.labels.project

    async def _get_client(self) -> DockerClient:
        """
        Return the Docker client, connecting first if needed.

        docker.from_env() negotiates the API version with the daemon, so a
        daemon that is down at startup only fails the pass, not the process.
        """
        if self.client is None:
            try:
                self.client = await async_docker_call(docker.from_env)
            except (docker.errors.DockerException, RequestException) as e:
                raise SourceUnavailable(f"Could not connect to Docker: {e}") from e
            logger.info("Connected to Docker daemon")
        return self.client

    def _observe(self, attrs: dict) -> Optional[ObservedUnit]:
        labels = attrs.get('Labels') or {}
        project = labels.get(self.project_label)
        if project is None:
            return None

        # Empty names are passed through; the reconciliation engine rejects them
        return ObservedUnit(
            project=project,
            name=parse_display_name(attrs) or '',
            status=attrs.get('Status') or attrs.get('State') or '',
            container_id=attrs.get('Id'),
            labels=labels,
            networks=parse_networks(attrs),
        )

    async def list_units(self) -> List[ObservedUnit]:
        """
        List running containers belonging to a compose project.

        Uses sparse listing, which returns the raw list endpoint data (Names,
        Status, Labels, NetworkSettings) without inspecting every container.

        Raises:
            SourceUnavailable: If the Docker daemon cannot be reached or errors
        """
        client = await self._get_client()
        try:
            containers = await async_containers_list(client, sparse=True)
        except (docker.errors.DockerException, RequestException) as e:
            raise SourceUnavailable(f"Listing containers failed: {e}") from e

        observed = []
        for container in containers:
            unit = self._observe(container.attrs)
            if unit is not None:
                observed.append(unit)

        logger.debug(f"Observed {len(observed)} compose containers out of {len(containers)} running")
        return observed

    def close(self):
        if self.client is None:
            return
        try:
            self.client.close()
        except Exception as e:
            logger.debug(f"Error closing Docker client: {e}")
