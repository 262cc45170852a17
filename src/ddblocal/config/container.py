"""Container (DynamoDB Local image) configuration."""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ContainerConfig(BaseSettings):
    """Settings describing the single container a supervisor owns."""

    model_config = SettingsConfigDict(env_prefix="DDBLOCAL_", extra="ignore")

    image: str = Field(default="amazon/dynamodb-local:2.5.2")
    container_name_prefix: str = Field(default="dynamodb-local")
    container_working_dir: str = Field(default="/home/dynamodblocal")
    container_data_path: str = Field(default="/home/dynamodblocal/data")
    pull_missing_image: bool = Field(default=True)
    docker_base_url: Optional[str] = Field(default=None)

    def build_command(self, port: int) -> List[str]:
        """Get the DynamoDB Local command line for a container port."""
        return [
            "-jar",
            "DynamoDBLocal.jar",
            "-sharedDb",
            "-dbPath",
            self.container_data_path,
            "-port",
            str(port),
        ]
