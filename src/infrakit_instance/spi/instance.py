"""Instance plugin interface and wire types.

Field aliases keep the capitalised JSON names the orchestrator sends
(``Properties``, ``Tags``, ``LogicalID``, ``ID``); Python code uses the
snake_case attributes.
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

InstanceID = str
LogicalID = str


class Spec(BaseModel):
    """Provisioning intent sent by the orchestrator."""

    model_config = ConfigDict(populate_by_name=True)

    properties: Any = Field(default=None, alias="Properties")
    tags: dict[str, str] = Field(default_factory=dict, alias="Tags")
    logical_id: LogicalID | None = Field(default=None, alias="LogicalID")

    @field_validator("tags", mode="before")
    @classmethod
    def _null_tags(cls, value: Any) -> Any:
        return {} if value is None else value


class Description(BaseModel):
    """One live backend resource as seen by describe_instances."""

    model_config = ConfigDict(populate_by_name=True)

    id: InstanceID = Field(alias="ID")
    logical_id: LogicalID | None = Field(default=None, alias="LogicalID")
    tags: dict[str, str] = Field(default_factory=dict, alias="Tags")


class InstancePlugin(ABC):
    """Interface every instance backend implements.

    Implementations: EBSPlugin (block-storage volumes), FusionPlugin (VMware VMs)
    """

    name: str

    async def init(self) -> None:
        """Acquire backend sessions and start background workers."""

    async def close(self) -> None:
        """Drain background work and release backend sessions."""

    @abstractmethod
    async def validate(self, request: Any) -> None:
        """Structurally validate a provision request.

        Args:
            request: Raw JSON (str/bytes) or an already decoded JSON value.

        Raises:
            MalformedRequestError: If the request does not match the schema.
        """
        ...

    @abstractmethod
    async def provision(self, spec: Spec) -> InstanceID:
        """Create a backend resource for spec.

        Returns:
            Identifier of the new resource.

        Raises:
            InvalidSpecError: If properties are missing or malformed.
        """
        ...

    @abstractmethod
    async def destroy(self, instance_id: InstanceID) -> None:
        """Remove the backend resource named by instance_id."""
        ...

    @abstractmethod
    async def describe_instances(self, tags: dict[str, str]) -> list[Description]:
        """List live resources carrying every tag in tags.

        Args:
            tags: Tag filter. Empty matches every live resource.
        """
        ...
