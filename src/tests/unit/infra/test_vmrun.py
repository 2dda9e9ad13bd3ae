"""Unit tests for the vmrun host wrapper and .vmx helpers."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from infrakit_instance.config import FusionConfig
from infrakit_instance.errors import BackendCallError
from infrakit_instance.infra import VmrunError, VmrunHost, read_vmx, update_vmx, write_vmx


def _process(output: bytes = b"", returncode: int = 0) -> MagicMock:
    proc = MagicMock()
    proc.returncode = returncode
    proc.communicate = AsyncMock(return_value=(output, None))
    return proc


@pytest.fixture
def host() -> VmrunHost:
    return VmrunHost(FusionConfig(vmrun_path="/usr/bin/vmrun", host_type="ws", password="s3cret"))


class TestVmrunHost:
    """Tests for VmrunHost command construction and output handling."""

    async def test_list_running_skips_header(self, host: VmrunHost) -> None:
        output = b"Total running VMs: 2\n/vms/a/a.vmx\n/vms/b/b.vmx\n\n"
        with patch(
            "infrakit_instance.infra.vmrun.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=_process(output)),
        ) as exec_mock:
            running = await host.list_running()

        assert running == ["/vms/a/a.vmx", "/vms/b/b.vmx"]
        assert exec_mock.call_args.args == ("/usr/bin/vmrun", "-T", "ws", "list")

    async def test_list_running_none(self, host: VmrunHost) -> None:
        with patch(
            "infrakit_instance.infra.vmrun.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=_process(b"Total running VMs: 0\n")),
        ):
            assert await host.list_running() == []

    async def test_clone_passes_password(self, host: VmrunHost) -> None:
        with patch(
            "infrakit_instance.infra.vmrun.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=_process()),
        ) as exec_mock:
            await host.clone("/src/src.vmx", "/vms/i/i.vmx", "i")

        assert exec_mock.call_args.args == (
            "/usr/bin/vmrun", "-T", "ws", "-vp", "s3cret",
            "clone", "/src/src.vmx", "/vms/i/i.vmx", "full", "-cloneName=i",
        )

    async def test_start_and_stop_modes(self, host: VmrunHost) -> None:
        with patch(
            "infrakit_instance.infra.vmrun.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=_process()),
        ) as exec_mock:
            await host.start("/vms/i/i.vmx", gui=True)
            await host.start("/vms/i/i.vmx")
            await host.stop("/vms/i/i.vmx")

        calls = [call.args[3:] for call in exec_mock.call_args_list]
        assert calls == [
            ("start", "/vms/i/i.vmx", "gui"),
            ("start", "/vms/i/i.vmx", "nogui"),
            ("stop", "/vms/i/i.vmx", "hard"),
        ]

    async def test_nonzero_exit_raises(self, host: VmrunHost) -> None:
        with patch(
            "infrakit_instance.infra.vmrun.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=_process(b"Error: The virtual machine is not powered on\n", 255)),
        ):
            with pytest.raises(VmrunError) as exc_info:
                await host.stop("/vms/i/i.vmx")

        error = exc_info.value
        assert isinstance(error, BackendCallError)
        assert error.command == "stop"
        assert error.returncode == 255
        assert "not powered on" in error.message

    async def test_connect_lists_vms(self, host: VmrunHost) -> None:
        with patch(
            "infrakit_instance.infra.vmrun.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=_process(b"Total running VMs: 0\n")),
        ) as exec_mock:
            await host.connect()

        exec_mock.assert_called_once()


class TestVmxFiles:
    """Tests for read_vmx / write_vmx / update_vmx."""

    def test_read_skips_comments_and_blanks(self, tmp_path: Path) -> None:
        vmx = tmp_path / "a.vmx"
        vmx.write_text(
            '#!/usr/bin/vmware\n.encoding = "UTF-8"\n\ndisplayName = "my vm"\nbogus line\n'
        )

        assert read_vmx(vmx) == {".encoding": "UTF-8", "displayName": "my vm"}

    def test_update_preserves_order_and_other_keys(self, tmp_path: Path) -> None:
        vmx = tmp_path / "a.vmx"
        write_vmx(vmx, {"a": "1", "displayName": "old", "z": "2"})

        update_vmx(vmx, {"displayName": "new", "memsize": "1024"})

        assert list(read_vmx(vmx).items()) == [
            ("a", "1"),
            ("displayName", "new"),
            ("z", "2"),
            ("memsize", "1024"),
        ]

    def test_read_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            read_vmx(tmp_path / "missing.vmx")

    def test_read_honours_declared_encoding(self, tmp_path: Path) -> None:
        vmx = tmp_path / "a.vmx"
        vmx.write_bytes(b'.encoding = "windows-1252"\ndisplayName = "Caf\xe9"\n')

        assert read_vmx(vmx)["displayName"] == "Café"

    def test_read_replaces_undecodable_bytes(self, tmp_path: Path) -> None:
        vmx = tmp_path / "a.vmx"
        vmx.write_bytes(b'displayName = "Caf\xe9"\nmemsize = "256"\n')

        values = read_vmx(vmx)

        assert values["displayName"] == "Caf\ufffd"
        assert values["memsize"] == "256"

    def test_unknown_encoding_falls_back_to_utf8(self, tmp_path: Path) -> None:
        vmx = tmp_path / "a.vmx"
        vmx.write_bytes('.encoding = "no-such-codec"\ndisplayName = "Café"\n'.encode())

        assert read_vmx(vmx)["displayName"] == "Café"

    def test_update_keeps_declared_encoding(self, tmp_path: Path) -> None:
        vmx = tmp_path / "a.vmx"
        vmx.write_bytes(b'.encoding = "windows-1252"\ndisplayName = "Caf\xe9"\n')

        update_vmx(vmx, {"memsize": "1024"})

        assert b'displayName = "Caf\xe9"' in vmx.read_bytes()
        assert read_vmx(vmx)["memsize"] == "1024"
