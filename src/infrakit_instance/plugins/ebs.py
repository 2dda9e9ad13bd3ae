"""EBS volume instance plugin.

Each instance is one EBS volume. The volume id is the instance ID, and all
tags (user, system and logical ID) are stored as native EC2 tags, so
describe_instances can push tag filtering to EC2.

Provision request:
{
    "DiscoverDefaults": true,
    "Tags": {"role": "data"},
    "CreateVolumeInput": {"Size": 100, "VolumeType": "gp3"}
}
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_pascal

from infrakit_instance.errors import BackendProtocolError
from infrakit_instance.infra import EC2Operations, InstanceMetadata, MetadataKey
from infrakit_instance.logging_schema import LogEvent
from infrakit_instance.plugins.base import request_from_spec, validate_request
from infrakit_instance.spi import Description, InstanceID, InstancePlugin, Spec
from infrakit_instance.tags import (
    decode_logical_id,
    encode_logical_id,
    merge_tags,
    tags_from_ec2,
    tags_to_ec2,
)

logger = logging.getLogger(__name__)

# Volume states reported by describe_instances; deleting/deleted/error are terminal.
LIVE_VOLUME_STATES = ("creating", "available", "in-use")


class CreateVolumeInput(BaseModel):
    """Subset of the EC2 CreateVolume parameters. Unknown keys are ignored."""

    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True, extra="ignore")

    availability_zone: str | None = None
    size: int | None = None
    volume_type: str | None = None
    iops: int | None = None
    throughput: int | None = None
    snapshot_id: str | None = None
    encrypted: bool | None = None
    kms_key_id: str | None = None
    multi_attach_enabled: bool | None = None
    outpost_arn: str | None = None
    dry_run: bool | None = None

    def to_api(self) -> dict[str, Any]:
        """Convert to CreateVolume keyword arguments."""
        return self.model_dump(by_alias=True, exclude_none=True)


class CreateVolumeRequest(BaseModel):
    """Provision request for the EBS backend."""

    model_config = ConfigDict(populate_by_name=True)

    discover_defaults: bool = Field(default=False, alias="DiscoverDefaults")
    tags: dict[str, str] = Field(default_factory=dict, alias="Tags")
    create_volume_input: CreateVolumeInput = Field(
        default_factory=CreateVolumeInput, alias="CreateVolumeInput"
    )


def describe_volume_filters(tags: dict[str, str]) -> list[dict[str, Any]]:
    """Build DescribeVolumes filters: live states AND every tag in tags."""
    filters: list[dict[str, Any]] = [
        {"Name": "status", "Values": list(LIVE_VOLUME_STATES)},
    ]
    for key, value in sorted(tags.items()):
        filters.append({"Name": f"tag:{key}", "Values": [value]})
    return filters


class EBSPlugin(InstancePlugin):
    """Instance plugin backed by EBS volumes."""

    name = "ebs"

    def __init__(
        self,
        ec2: EC2Operations,
        metadata: InstanceMetadata | None = None,
    ) -> None:
        self._ec2 = ec2
        self._metadata = metadata

    async def init(self) -> None:
        await self._ec2.init()
        logger.info("EBS plugin started", extra={"event": LogEvent.PLUGIN_STARTED})

    async def close(self) -> None:
        await self._ec2.close()
        if self._metadata is not None:
            await self._metadata.close()
        logger.info("EBS plugin stopped", extra={"event": LogEvent.PLUGIN_STOPPED})

    async def validate(self, request: Any) -> None:
        validate_request(CreateVolumeRequest, request)

    async def provision(self, spec: Spec) -> InstanceID:
        """Create and tag a volume.

        No rollback: if tagging fails the volume stays, untagged, and the
        error propagates.
        """
        request = request_from_spec(CreateVolumeRequest, spec)

        volume_input = request.create_volume_input
        if request.discover_defaults:
            volume_input = await self._discover_defaults(volume_input)

        volume = await self._ec2.create_volume(volume_input.to_api())
        volume_id = volume.get("VolumeId")
        if not volume_id:
            raise BackendProtocolError("EC2 did not respond with a volume id")

        logger.info(
            "Volume created",
            extra={
                "event": LogEvent.INSTANCE_PROVISIONED,
                "instance_id": volume_id,
                "logical_id": spec.logical_id,
            },
        )

        await self._tag_volume(volume_id, spec, request.tags)
        return volume_id

    async def destroy(self, instance_id: InstanceID) -> None:
        await self._ec2.delete_volume(instance_id)
        logger.info(
            "Volume deleted",
            extra={"event": LogEvent.INSTANCE_DESTROYED, "instance_id": instance_id},
        )

    async def describe_instances(self, tags: dict[str, str]) -> list[Description]:
        """List live volumes carrying every tag in tags, across all result pages."""
        filters = describe_volume_filters(tags)

        descriptions: list[Description] = []
        next_token: str | None = None
        while True:
            page = await self._ec2.describe_volumes(filters, next_token)
            for volume in page.get("Volumes", []):
                volume_tags = tags_from_ec2(volume.get("Tags"))
                descriptions.append(
                    Description(
                        id=volume["VolumeId"],
                        logical_id=decode_logical_id(volume_tags),
                        tags=volume_tags,
                    )
                )
            next_token = page.get("NextToken")
            if not next_token:
                break

        logger.debug(
            "Volumes described",
            extra={"event": LogEvent.INSTANCES_DESCRIBED, "count": len(descriptions)},
        )
        return descriptions

    async def _tag_volume(
        self, volume_id: str, spec: Spec, user_tags: dict[str, str]
    ) -> None:
        system_tags = encode_logical_id(spec.tags, spec.logical_id)
        merged = merge_tags(user_tags, system_tags)
        if not merged:
            return
        await self._ec2.create_tags(volume_id, tags_to_ec2(merged))
        logger.debug(
            "Volume tagged",
            extra={"event": LogEvent.INSTANCE_TAGGED, "instance_id": volume_id, "tags": len(merged)},
        )

    async def _discover_defaults(self, volume_input: CreateVolumeInput) -> CreateVolumeInput:
        """Fill unset placement fields from the machine the plugin runs on."""
        if volume_input.availability_zone is not None or self._metadata is None:
            return volume_input
        try:
            zone = await self._metadata.get(MetadataKey.AVAILABILITY_ZONE)
        except Exception as e:
            logger.warning(
                "Could not discover availability zone",
                extra={"event": LogEvent.DISCOVERY_FAILED, "error": str(e)},
            )
            return volume_input
        logger.info(
            "Discovered availability zone",
            extra={"event": LogEvent.DEFAULTS_DISCOVERED, "availability_zone": zone},
        )
        return volume_input.model_copy(update={"availability_zone": zone})
