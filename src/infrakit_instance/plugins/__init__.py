"""Instance plugin implementations."""

from infrakit_instance.config import PluginConfig, get_plugin_config
from infrakit_instance.infra import EC2Operations, InstanceMetadata
from infrakit_instance.plugins.ebs import EBSPlugin
from infrakit_instance.plugins.fusion import FusionPlugin
from infrakit_instance.spi import InstancePlugin


def create_plugin(config: PluginConfig | None = None) -> InstancePlugin:
    """Build the plugin selected by config.backend."""
    config = config or get_plugin_config()
    if config.backend == "fusion":
        return FusionPlugin(config.fusion)
    return EBSPlugin(
        ec2=EC2Operations(config.aws),
        metadata=InstanceMetadata(config.aws),
    )


__all__ = [
    "EBSPlugin",
    "FusionPlugin",
    "create_plugin",
]
