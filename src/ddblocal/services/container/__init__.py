"""Container management services.

This package provides the container runtime capability split into:
- spec.py: ContainerSpec and the DynamoDB Local spec builder
- runtime.py: ContainerRuntime interface and the docker SDK implementation
"""

from .runtime import ContainerRuntime, DockerRuntime
from .spec import ContainerSpec, build_container_spec

__all__ = [
    "ContainerRuntime",
    "DockerRuntime",
    "ContainerSpec",
    "build_container_spec",
]
