"""Plugin lifecycle and FastAPI dependency.

The process serves exactly one backend. The plugin is built from config in
the app lifespan and shared by every request.
"""

import logging

from infrakit_instance.plugins import create_plugin
from infrakit_instance.spi import InstancePlugin

logger = logging.getLogger(__name__)

_plugin: InstancePlugin | None = None


async def init_plugin(plugin: InstancePlugin | None = None) -> InstancePlugin:
    """Build (unless given) and initialize the served plugin.

    A plugin whose init() fails is not kept.
    """
    global _plugin
    candidate = plugin or create_plugin()
    await candidate.init()
    _plugin = candidate
    logger.info("Serving %s backend", candidate.name)
    return candidate


async def close_plugin() -> None:
    """Drain and close the served plugin, if any."""
    global _plugin
    plugin, _plugin = _plugin, None
    if plugin is not None:
        await plugin.close()


def plugin_ready() -> bool:
    return _plugin is not None


def get_plugin() -> InstancePlugin:
    """FastAPI dependency returning the served plugin.

    Raises:
        RuntimeError: If called before init_plugin().
    """
    if _plugin is None:
        raise RuntimeError("Plugin not initialized. Call init_plugin() first.")
    return _plugin
