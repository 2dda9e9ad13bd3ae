"""VMware Fusion/Workstation instance plugin.

Each instance is a full clone of a source VM, stored as
``<vm_dir>/<name>/<name>.vmx``. The VM display name is the instance ID.

VMware has no tag storage, so provision writes the original Spec as a
side-record (``infrakit.spec``) next to the VMX file. describe_instances
lists running VMs and matches against that record locally.

Destroy stops the VM and hands the VM directory to a background worker that
moves it into ``<vm_dir>/.trash``; the caller does not wait for the move.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import time
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, ValidationError

from infrakit_instance.cleanup import CleanupQueue
from infrakit_instance.config import FusionConfig
from infrakit_instance.infra import VmrunError, VmrunHost, read_vmx, update_vmx
from infrakit_instance.logging_schema import LogEvent
from infrakit_instance.plugins.base import parse_request, request_from_spec, validate_request
from infrakit_instance.spi import Description, InstanceID, InstancePlugin, Spec
from infrakit_instance.tags import (
    decode_logical_id,
    encode_logical_id,
    merge_tags,
    tags_match,
)

logger = logging.getLogger(__name__)

SPEC_RECORD_NAME = "infrakit.spec"


class CreateVMRequest(BaseModel):
    """Provision request for the VMware backend."""

    model_config = ConfigDict(populate_by_name=True)

    tags: dict[str, str] = Field(default_factory=dict, alias="Tags")
    memory_size_mbs: NonNegativeInt = Field(default=512, alias="MemorySizeMBs")
    num_cpus: NonNegativeInt = Field(default=1, alias="NumCPUs")
    launch_gui: bool = Field(default=False, alias="LaunchGUI")


class VMFilter(BaseModel):
    """Selects running VMs.

    display_name: exact display name, or None for any.
    tags: None skips the side-record entirely. A mapping (even empty) only
        matches VMs with a readable side-record carrying every tag.
    """

    model_config = ConfigDict(frozen=True)

    display_name: str | None = None
    tags: dict[str, str] | None = None

    @property
    def needs_spec(self) -> bool:
        return self.tags is not None

    def matches(self, vm: RunningVM) -> bool:
        if self.display_name is not None and vm.display_name != self.display_name:
            return False
        if self.tags is not None:
            if vm.spec is None:
                return False
            return tags_match(vm.tags, self.tags)
        return True


class RunningVM(BaseModel):
    """A running VM and, when loaded, its side-record."""

    vmx_path: str
    display_name: str
    spec: Spec | None = None

    @property
    def tags(self) -> dict[str, str]:
        """Request tags overlaid with system tags, all taken from the side-record."""
        if self.spec is None:
            return {}
        user_tags: dict[str, str] = {}
        if self.spec.properties is not None:
            try:
                user_tags = parse_request(CreateVMRequest, self.spec.properties).tags
            except ValidationError:
                user_tags = {}
        system_tags = encode_logical_id(self.spec.tags, self.spec.logical_id)
        return dict(merge_tags(user_tags, system_tags))

    def describe(self) -> Description:
        tags = self.tags
        return Description(id=self.display_name, logical_id=decode_logical_id(tags), tags=tags)


def write_spec_record(vm_dir: Path, spec: Spec) -> Path:
    """Persist spec next to the VM's files."""
    path = vm_dir / SPEC_RECORD_NAME
    path.write_text(spec.model_dump_json(by_alias=True), encoding="utf-8")
    return path


def read_spec_record(vmx_path: str | Path) -> Spec:
    """Load the side-record stored next to vmx_path.

    Raises:
        OSError: If the record cannot be read.
        UnicodeDecodeError: If the record is not UTF-8.
        pydantic.ValidationError: If the record is not a valid Spec.
    """
    path = Path(vmx_path).parent / SPEC_RECORD_NAME
    return Spec.model_validate_json(path.read_text(encoding="utf-8"))


def move_to_trash(trash_dir: Path, vmx_path: str | Path) -> Path:
    """Move the directory holding vmx_path into trash_dir."""
    vm_dir = Path(vmx_path).parent
    trash_dir.mkdir(parents=True, exist_ok=True)
    target = trash_dir / vm_dir.name
    if target.exists():
        raise FileExistsError(f"{target} already exists")
    shutil.move(str(vm_dir), str(target))
    return target


class FusionPlugin(InstancePlugin):
    """Instance plugin backed by VMware virtual machines."""

    name = "fusion"

    def __init__(self, config: FusionConfig, host: VmrunHost | None = None) -> None:
        self._vm_dir = Path(config.vm_dir)
        self._source_vmx = config.vmx_path
        self._trash_dir = self._vm_dir / config.trash_dir_name
        self._host = host or VmrunHost(config)
        self._cleanup = CleanupQueue(self._cleanup_vm, maxsize=config.cleanup_queue_size)

    @property
    def cleanup_queue(self) -> CleanupQueue:
        return self._cleanup

    async def init(self) -> None:
        self._vm_dir.mkdir(parents=True, exist_ok=True)
        if not Path(self._source_vmx).is_file():
            raise FileNotFoundError(f"Source VM not found: {self._source_vmx}")
        await self._host.connect()
        self._cleanup.start()
        logger.info(
            "Fusion plugin started",
            extra={"event": LogEvent.PLUGIN_STARTED, "vm_dir": str(self._vm_dir)},
        )

    async def close(self) -> None:
        # Drain pending cleanups before letting go of the host.
        await self._cleanup.close()
        logger.info("Disconnecting from VM host", extra={"event": LogEvent.PLUGIN_STOPPED})

    async def validate(self, request: Any) -> None:
        validate_request(CreateVMRequest, request)

    async def provision(self, spec: Spec) -> InstanceID:
        """Clone, configure and start a VM.

        No rollback: a VM that fails to start is left on disk with its
        side-record in place.
        """
        request = request_from_spec(CreateVMRequest, spec)

        vm_dir = await asyncio.to_thread(self._reserve_instance_dir)
        name = vm_dir.name
        vmx_path = vm_dir / f"{name}.vmx"

        logger.debug("Cloning %s into %s", name, vmx_path)
        await self._host.clone(self._source_vmx, str(vmx_path), name)

        await asyncio.to_thread(
            update_vmx,
            vmx_path,
            {
                "displayName": name,
                "memsize": str(request.memory_size_mbs),
                "numvcpus": str(request.num_cpus),
            },
        )
        await asyncio.to_thread(write_spec_record, vm_dir, spec)
        logger.debug(
            "Spec record written",
            extra={"event": LogEvent.SPEC_RECORD_WRITTEN, "instance_id": name},
        )

        await self._host.start(str(vmx_path), gui=request.launch_gui)
        logger.info(
            "VM started",
            extra={
                "event": LogEvent.INSTANCE_PROVISIONED,
                "instance_id": name,
                "logical_id": spec.logical_id,
            },
        )
        return name

    async def destroy(self, instance_id: InstanceID) -> None:
        """Stop every running VM named instance_id and queue its files for cleanup.

        No matching VM is a successful no-op.
        """
        matches = await self.find_running(VMFilter(display_name=instance_id))
        if not matches:
            return

        for vm in matches:
            try:
                await self._host.stop(vm.vmx_path)
            except (VmrunError, OSError) as e:
                logger.warning(
                    "Destroy vm failed",
                    extra={
                        "event": LogEvent.PARTIAL_FAILURE,
                        "instance_id": instance_id,
                        "error": str(e),
                    },
                )
            else:
                logger.info(
                    "VM stopped",
                    extra={"event": LogEvent.INSTANCE_STOPPED, "instance_id": instance_id},
                )
            await self._cleanup.put(vm.vmx_path)

        logger.info(
            "VM destroyed",
            extra={"event": LogEvent.INSTANCE_DESTROYED, "instance_id": instance_id},
        )

    async def describe_instances(self, tags: dict[str, str]) -> list[Description]:
        matches = await self.find_running(VMFilter(tags=dict(tags)))
        descriptions = [vm.describe() for vm in matches]
        logger.debug(
            "VMs described",
            extra={"event": LogEvent.INSTANCES_DESCRIBED, "count": len(descriptions)},
        )
        return descriptions

    async def find_running(self, vm_filter: VMFilter) -> list[RunningVM]:
        """Return running VMs selected by vm_filter, in vmrun list order."""
        matches: list[RunningVM] = []
        for vmx_path in await self._host.list_running():
            vm = await asyncio.to_thread(self._inspect, vmx_path, vm_filter.needs_spec)
            if vm is not None and vm_filter.matches(vm):
                matches.append(vm)
        return matches

    def _inspect(self, vmx_path: str, with_spec: bool) -> RunningVM | None:
        try:
            display_name = read_vmx(vmx_path).get("displayName", "")
        except (OSError, ValueError) as e:
            logger.warning("Err getting display name from %s: %s", vmx_path, e)
            return None

        vm = RunningVM(vmx_path=vmx_path, display_name=display_name)
        if not with_spec:
            return vm

        try:
            vm.spec = read_spec_record(vmx_path)
        except (OSError, ValueError) as e:
            # ValueError covers ValidationError and undecodable bytes
            logger.warning(
                "Err reading spec file",
                extra={
                    "event": LogEvent.SPEC_RECORD_UNREADABLE,
                    "vmx_path": vmx_path,
                    "error": str(e),
                },
            )
        return vm

    def _reserve_instance_dir(self) -> Path:
        """Create a fresh, never-used instance directory named after the clock."""
        millis = time.time_ns() // 1_000_000
        while True:
            vm_dir = self._vm_dir / f"instance-{millis}"
            try:
                vm_dir.mkdir(parents=True)
            except FileExistsError:
                millis += 1
                continue
            return vm_dir

    async def _cleanup_vm(self, vmx_path: str) -> None:
        target = await asyncio.to_thread(move_to_trash, self._trash_dir, vmx_path)
        logger.debug("Moved %s to %s", Path(vmx_path).parent, target)
