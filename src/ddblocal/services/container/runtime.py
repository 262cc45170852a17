"""Container runtime capability and its docker SDK implementation.

The supervisor and the orchestrator only talk to containers through the
ContainerRuntime interface. All methods are blocking; async callers go
through ``run_in_executor``.
"""

from abc import ABC, abstractmethod
from typing import Iterator, Optional

import docker
import structlog
from docker.errors import APIError, ImageNotFound, NotFound

from ...config.container import ContainerConfig
from .spec import ContainerSpec

logger = structlog.get_logger(__name__)


class ContainerRuntime(ABC):
    """Create/start/attach/kill/remove for a single container."""

    @abstractmethod
    def create(self, spec: ContainerSpec) -> str:
        """Create a container and return its identifier."""

    @abstractmethod
    def start(self, container_id: str) -> None:
        """Start a created container."""

    @abstractmethod
    def attach(self, container_id: str) -> Iterator[bytes]:
        """Stream the container's output. The iterator ends when it exits."""

    @abstractmethod
    def kill(self, container_id: str) -> bool:
        """Kill a running container.

        Returns:
            False if the container was already gone or not running
        """

    @abstractmethod
    def remove(self, container_id: str, force: bool = False) -> bool:
        """Remove a container and its anonymous volumes.

        Returns:
            False if the container did not exist
        """

    @abstractmethod
    def exists(self, container_id: str) -> bool:
        """Check whether the runtime still lists the container."""

    def close(self) -> None:
        """Release any connection held by the runtime."""


class DockerRuntime(ContainerRuntime):
    """ContainerRuntime backed by the docker SDK."""

    def __init__(self, config: ContainerConfig, client: Optional[docker.DockerClient] = None):
        self._config = config
        self._client = client

    @property
    def client(self) -> docker.DockerClient:
        """Get the Docker client, connecting lazily."""
        if self._client is None:
            if self._config.docker_base_url:
                self._client = docker.DockerClient(base_url=self._config.docker_base_url)
            else:
                self._client = docker.from_env()
        return self._client

    def create(self, spec: ContainerSpec) -> str:
        kwargs = spec.to_create_kwargs()
        try:
            container = self.client.containers.create(**kwargs)
        except ImageNotFound:
            if not self._config.pull_missing_image:
                raise
            logger.info("Pulling image", image=spec.image)
            self.client.images.pull(spec.image)
            container = self.client.containers.create(**kwargs)
        logger.info("Created container", container_id=container.id[:12], name=spec.name)
        return container.id

    def start(self, container_id: str) -> None:
        self.client.containers.get(container_id).start()

    def attach(self, container_id: str) -> Iterator[bytes]:
        container = self.client.containers.get(container_id)
        return container.attach(stdout=True, stderr=True, stream=True, logs=True)

    def kill(self, container_id: str) -> bool:
        try:
            self.client.containers.get(container_id).kill()
            return True
        except NotFound:
            return False
        except APIError as e:
            # 409: container is not running
            if e.status_code == 409:
                return False
            raise

    def remove(self, container_id: str, force: bool = False) -> bool:
        try:
            self.client.containers.get(container_id).remove(v=True, force=force)
            return True
        except NotFound:
            return False
        except APIError as e:
            # 409: removal already in progress
            if e.status_code == 409 and "in progress" in str(e).lower():
                return False
            raise

    def exists(self, container_id: str) -> bool:
        try:
            self.client.containers.get(container_id)
            return True
        except NotFound:
            return False

    def close(self) -> None:
        """Close the Docker client connection."""
        if self._client is not None:
            self._client.close()
            self._client = None
