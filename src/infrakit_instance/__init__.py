"""Instance lifecycle plugins for EBS volumes and VMware virtual machines."""

__version__ = "0.1.0"
