"""EC2 instance metadata client.

Used to infer defaults (e.g. availability zone) from the machine the plugin
runs on. Tries an IMDSv2 session token first and falls back to plain
IMDSv1 requests when the token endpoint is unavailable.
"""

import logging
from enum import Enum

import httpx

from infrakit_instance.config import AwsConfig

logger = logging.getLogger(__name__)

_TOKEN_HEADER = "X-aws-ec2-metadata-token"
_TOKEN_TTL_HEADER = "X-aws-ec2-metadata-token-ttl-seconds"


class MetadataKey(str, Enum):
    """Metadata paths under /meta-data/."""

    AVAILABILITY_ZONE = "placement/availability-zone"
    REGION = "placement/region"
    INSTANCE_ID = "instance-id"
    INSTANCE_TYPE = "instance-type"


class InstanceMetadata:
    """Async instance metadata client."""

    def __init__(self, config: AwsConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = client

    def _create_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._config.metadata_url,
            timeout=self._config.metadata_timeout,
        )

    async def _http(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = self._create_client()
        return self._client

    async def _token(self, client: httpx.AsyncClient) -> str | None:
        try:
            resp = await client.put(
                "/api/token",
                headers={_TOKEN_TTL_HEADER: str(self._config.metadata_token_ttl)},
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.debug("IMDSv2 token unavailable, using IMDSv1: %s", e)
            return None
        return resp.text.strip()

    async def get(self, key: MetadataKey) -> str:
        """Fetch one metadata value.

        Raises:
            httpx.HTTPError: If the metadata service is unreachable or returns an error.
        """
        client = await self._http()
        headers = {}
        token = await self._token(client)
        if token:
            headers[_TOKEN_HEADER] = token
        resp = await client.get(f"/meta-data/{key.value}", headers=headers)
        resp.raise_for_status()
        return resp.text.strip()

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
