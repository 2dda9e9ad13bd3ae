"""Fixtures for instance plugin unit tests."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from infrakit_instance.config import FusionConfig
from infrakit_instance.infra import EC2Operations, InstanceMetadata, VmrunHost


@pytest.fixture
def mock_ec2() -> AsyncMock:
    """Mock EC2Operations for testing."""
    ec2 = AsyncMock(spec=EC2Operations)
    ec2.init = AsyncMock()
    ec2.close = AsyncMock()
    ec2.create_volume = AsyncMock(return_value={"VolumeId": "vol-1"})
    ec2.create_tags = AsyncMock()
    ec2.delete_volume = AsyncMock()
    ec2.describe_volumes = AsyncMock(return_value={"Volumes": []})
    return ec2


@pytest.fixture
def mock_metadata() -> AsyncMock:
    """Mock InstanceMetadata for testing."""
    metadata = AsyncMock(spec=InstanceMetadata)
    metadata.get = AsyncMock(return_value="us-west-2b")
    metadata.close = AsyncMock()
    return metadata


@pytest.fixture
def mock_host() -> AsyncMock:
    """Mock VmrunHost for testing."""
    host = AsyncMock(spec=VmrunHost)
    host.connect = AsyncMock()
    host.list_running = AsyncMock(return_value=[])
    host.clone = AsyncMock()
    host.start = AsyncMock()
    host.stop = AsyncMock()
    return host


@pytest.fixture
def source_vmx(tmp_path: Path) -> Path:
    """Source VM that provision clones from."""
    source_dir = tmp_path / "source"
    source_dir.mkdir()
    vmx = source_dir / "source.vmx"
    vmx.write_text('.encoding = "UTF-8"\ndisplayName = "source"\nmemsize = "256"\n')
    return vmx


@pytest.fixture
def fusion_config(tmp_path: Path, source_vmx: Path) -> FusionConfig:
    """FusionConfig pointing at a temporary VM directory."""
    return FusionConfig(
        vm_dir=str(tmp_path / "vms"),
        vmx_path=str(source_vmx),
        cleanup_queue_size=4,
    )
