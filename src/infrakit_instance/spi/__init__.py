"""Instance plugin service provider interface."""

from infrakit_instance.spi.instance import (
    Description,
    InstanceID,
    InstancePlugin,
    LogicalID,
    Spec,
)

__all__ = [
    "Description",
    "InstanceID",
    "InstancePlugin",
    "LogicalID",
    "Spec",
]
