"""Instance plugin endpoints.

One endpoint per plugin operation. Bodies and responses use the
capitalised wire names (ID, Tags, LogicalID, ...).
"""

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from infrakit_instance.api.dependencies import get_plugin
from infrakit_instance.metrics import track_operation
from infrakit_instance.spi import Description, InstancePlugin, Spec

router = APIRouter(prefix="/instances", tags=["instances"])


# =============================================================================
# Schemas
# =============================================================================


class ValidateResponse(BaseModel):
    ok: bool


class ProvisionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="ID")


class DestroyResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="ID")
    status: str


class DescribeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tags: dict[str, str] = Field(default_factory=dict, alias="Tags")


class DescribeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    descriptions: list[Description] = Field(alias="Descriptions")


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/validate", response_model=ValidateResponse)
async def validate_request(
    request: Request,
    plugin: InstancePlugin = Depends(get_plugin),
) -> ValidateResponse:
    """Validate a provision request without touching the backend.

    The raw body goes to the plugin so that invalid JSON is reported as
    MALFORMED_REQUEST like any other schema mismatch.
    """
    body = await request.body()
    with track_operation(plugin.name, "validate"):
        await plugin.validate(body)
    return ValidateResponse(ok=True)


@router.post("", status_code=201, response_model=ProvisionResponse)
async def provision_instance(
    spec: Spec,
    plugin: InstancePlugin = Depends(get_plugin),
) -> ProvisionResponse:
    """Provision an instance."""
    with track_operation(plugin.name, "provision"):
        instance_id = await plugin.provision(spec)
    return ProvisionResponse(id=instance_id)


@router.delete("/{instance_id}", response_model=DestroyResponse)
async def destroy_instance(
    instance_id: str,
    plugin: InstancePlugin = Depends(get_plugin),
) -> DestroyResponse:
    """Destroy an instance."""
    with track_operation(plugin.name, "destroy"):
        await plugin.destroy(instance_id)
    return DestroyResponse(id=instance_id, status="destroyed")


@router.post("/describe", response_model=DescribeResponse)
async def describe_instances(
    request: DescribeRequest,
    plugin: InstancePlugin = Depends(get_plugin),
) -> DescribeResponse:
    """Describe live instances matching every given tag."""
    with track_operation(plugin.name, "describe"):
        descriptions = await plugin.describe_instances(request.tags)
    return DescribeResponse(descriptions=descriptions)
