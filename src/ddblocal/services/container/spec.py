"""Container creation spec for DynamoDB Local.

Translates a LaunchConfig plus container settings into the fields the
container runtime needs, and into docker SDK ``containers.create`` kwargs.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from ...config.container import ContainerConfig
from ...models.launch import LaunchConfig

# Paths the service is told about via environment entries
CONTAINER_DATA_ENV = "path.data=/var/lib/ddb-local"
CONTAINER_LOGS_ENV = "path.logs=/var/log/ddb-local"

LABEL_PREFIX = "com.ddblocal"


@dataclass(frozen=True)
class ContainerSpec:
    """Everything needed to create the single supervised container."""

    image: str
    command: List[str]
    name: Optional[str]
    working_dir: str
    exposed_ports: List[str]
    environment: List[str]
    binds: Dict[str, str]  # host path -> container path
    port_bindings: Dict[str, int]  # "<port>/tcp" -> host port
    tty: bool = True
    labels: Dict[str, str] = field(default_factory=dict)

    def to_create_kwargs(self) -> Dict[str, Any]:
        """Build keyword arguments for ``DockerClient.containers.create``."""
        kwargs: Dict[str, Any] = {
            "image": self.image,
            "command": list(self.command),
            "working_dir": self.working_dir,
            "tty": self.tty,
            "stdin_open": self.tty,
            "detach": True,
            "environment": list(self.environment),
            "volumes": {
                host: {"bind": container, "mode": "rw"}
                for host, container in self.binds.items()
            },
            "ports": {
                container_port: ("0.0.0.0", host_port)
                for container_port, host_port in self.port_bindings.items()
            },
            "labels": dict(self.labels),
        }
        if self.name:
            kwargs["name"] = self.name
        return kwargs


def build_container_spec(config: LaunchConfig, container: ContainerConfig) -> ContainerSpec:
    """Create the container spec for a launch.

    The service port is exposed and bound to the same host port, the data
    directory is bind-mounted at the configured data path, and the engine
    options become environment entries.
    """
    port_key = f"{config.port}/tcp"
    run_dir = Path(config.data_dir).parent.name
    name = f"{container.container_name_prefix}-{run_dir}" if run_dir else None

    return ContainerSpec(
        image=container.image,
        command=container.build_command(config.port),
        name=name,
        working_dir=container.container_working_dir,
        exposed_ports=[port_key],
        environment=[*config.options, CONTAINER_DATA_ENV, CONTAINER_LOGS_ENV],
        binds={config.data_dir: container.container_data_path},
        port_bindings={port_key: config.port},
        tty=True,
        labels={
            f"{LABEL_PREFIX}.managed": "true",
            f"{LABEL_PREFIX}.workspace": str(Path(config.data_dir).parent),
            f"{LABEL_PREFIX}.port": str(config.port),
        },
    )
