"""EC2 client for the EBS backend.

Holds one aiobotocore EC2 client for the lifetime of the plugin. Each method
maps to a single EC2 API call; botocore errors propagate unchanged and no
retries are layered on top of botocore's own.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from typing import TYPE_CHECKING, Any

from aiobotocore.session import AioSession, get_session

from infrakit_instance.config import AwsConfig

if TYPE_CHECKING:
    from types_aiobotocore_ec2 import EC2Client

logger = logging.getLogger(__name__)


class EC2Operations:
    """EC2 volume operations over a long-lived client."""

    def __init__(self, config: AwsConfig, session: AioSession | None = None) -> None:
        self._config = config
        self._session = session or get_session()
        self._stack: AsyncExitStack | None = None
        self._client: EC2Client | None = None

    async def init(self) -> None:
        """Open the EC2 client."""
        if self._client is not None:
            return
        stack = AsyncExitStack()
        self._client = await stack.enter_async_context(
            self._session.create_client(
                "ec2",
                region_name=self._config.region,
                endpoint_url=self._config.endpoint_url,
                aws_access_key_id=self._config.access_key,
                aws_secret_access_key=self._config.secret_key,
            )
        )
        self._stack = stack
        logger.info("EC2 client opened (region=%s)", self._config.region or "default")

    async def close(self) -> None:
        """Close the EC2 client."""
        if self._stack is not None:
            await self._stack.aclose()
            logger.info("EC2 client closed")
        self._stack = None
        self._client = None

    def _ec2(self) -> EC2Client:
        if self._client is None:
            raise RuntimeError("EC2 client not initialized. Call init() first.")
        return self._client

    async def create_volume(self, params: dict[str, Any]) -> dict[str, Any]:
        """CreateVolume. Returns the raw response (the new volume)."""
        return await self._ec2().create_volume(**params)

    async def create_tags(self, resource_id: str, tags: list[dict[str, str]]) -> None:
        """CreateTags on a single resource."""
        await self._ec2().create_tags(Resources=[resource_id], Tags=tags)

    async def delete_volume(self, volume_id: str) -> None:
        """DeleteVolume."""
        await self._ec2().delete_volume(VolumeId=volume_id)

    async def describe_volumes(
        self,
        filters: list[dict[str, Any]],
        next_token: str | None = None,
    ) -> dict[str, Any]:
        """DescribeVolumes, one page. The caller follows NextToken."""
        params: dict[str, Any] = {"Filters": filters}
        if next_token:
            params["NextToken"] = next_token
        return await self._ec2().describe_volumes(**params)
