"""Backend access layer."""

from infrakit_instance.infra.ec2 import EC2Operations
from infrakit_instance.infra.metadata import InstanceMetadata, MetadataKey
from infrakit_instance.infra.vmrun import (
    VmrunError,
    VmrunHost,
    read_vmx,
    update_vmx,
    write_vmx,
)

__all__ = [
    # EC2
    "EC2Operations",
    "InstanceMetadata",
    "MetadataKey",
    # VMware
    "VmrunError",
    "VmrunHost",
    "read_vmx",
    "update_vmx",
    "write_vmx",
]
