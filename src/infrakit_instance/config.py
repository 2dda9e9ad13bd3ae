"""Plugin configuration using pydantic-settings.

Configuration hierarchy:
- AwsConfig: EC2 client and instance metadata settings (EBS backend)
- FusionConfig: VMware host settings (Fusion backend)
- LoggingConfig: Logging behavior
- ServerConfig: HTTP server settings
- PluginConfig: Main config aggregating all sub-configs

Environment variable prefix: INFRAKIT_
Example: INFRAKIT_FUSION_VM_DIR=/var/lib/infrakit/vms
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AwsConfig(BaseSettings):
    """AWS settings for the EBS volume backend.

    Credentials left empty fall back to the default botocore chain
    (environment, shared config, instance profile).
    """

    model_config = SettingsConfigDict(env_prefix="INFRAKIT_AWS_")

    region: str | None = Field(default=None, description="EC2 region (botocore default if unset)")
    endpoint_url: str | None = Field(default=None, description="Override EC2 endpoint URL")
    access_key: str | None = Field(default=None, description="AWS access key id")
    secret_key: str | None = Field(default=None, description="AWS secret access key")

    # Instance metadata service (used by DiscoverDefaults)
    metadata_url: str = Field(
        default="http://169.254.169.254/latest",
        description="Base URL of the EC2 instance metadata service",
    )
    metadata_timeout: float = Field(default=2.0, description="Metadata request timeout (seconds)")
    metadata_token_ttl: int = Field(default=21600, description="IMDSv2 session token TTL (seconds)")


class FusionConfig(BaseSettings):
    """VMware Fusion/Workstation settings for the VM backend."""

    model_config = SettingsConfigDict(env_prefix="INFRAKIT_FUSION_")

    vm_dir: str = Field(default="./vms", description="Directory holding cloned VM directories")
    vmx_path: str = Field(default="", description="Source VMX file cloned for new instances")
    password: str = Field(default="", description="Password for encrypted source VMs")

    vmrun_path: str = Field(default="vmrun", description="Path to the vmrun executable")
    host_type: str = Field(default="fusion", description="vmrun host type (fusion, ws, player)")

    # Deferred cleanup
    cleanup_queue_size: int = Field(default=64, description="Capacity of the cleanup queue")
    trash_dir_name: str = Field(default=".trash", description="Trash directory under vm_dir")


class LoggingConfig(BaseSettings):
    """Logging configuration.

    Supports both text and JSON formats for different environments:
    - text: Human-readable for local development
    - json: Structured logging for production (log aggregation)
    """

    model_config = SettingsConfigDict(env_prefix="INFRAKIT_LOGGING_")

    level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: str = Field(default="text", description="Log format (text, json)")
    service_name: str = Field(default="infrakit-instance", description="Service identifier in logs")


class ServerConfig(BaseSettings):
    """HTTP server configuration."""

    model_config = SettingsConfigDict(env_prefix="INFRAKIT_SERVER_")

    host: str = Field(default="127.0.0.1", description="Server bind address")
    port: int = Field(default=8090, description="Server port")
    api_key: str = Field(default="", description="API key for authentication")


class PluginConfig(BaseSettings):
    """Main plugin configuration aggregating all sub-configs.

    Environment variable prefix: INFRAKIT_
    Sub-configs use their own prefixes (INFRAKIT_AWS_, INFRAKIT_FUSION_, etc.)
    """

    model_config = SettingsConfigDict(
        env_prefix="INFRAKIT_",
        env_nested_delimiter="__",
    )

    backend: Literal["ebs", "fusion"] = Field(
        default="ebs",
        description="Instance backend served by this process",
    )

    # Sub-configurations
    aws: AwsConfig = Field(default_factory=AwsConfig)
    fusion: FusionConfig = Field(default_factory=FusionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


@lru_cache
def get_plugin_config() -> PluginConfig:
    """Get cached plugin configuration singleton."""
    return PluginConfig()
