"""VMware host access through the vmrun command-line tool.

vmrun ships with VMware Fusion and Workstation and is the supported way to
drive the VIX API from outside C. Each method runs one vmrun command as an
asyncio subprocess.

Also provides helpers to read and rewrite .vmx files, which are flat
``key = "value"`` text files.
"""

import asyncio
import codecs
import logging
from pathlib import Path

from infrakit_instance.config import FusionConfig
from infrakit_instance.errors import BackendCallError

logger = logging.getLogger(__name__)


class VmrunError(BackendCallError):
    """vmrun exited with a non-zero status."""

    def __init__(self, command: str, returncode: int | None, output: str) -> None:
        self.command = command
        self.returncode = returncode
        self.output = output
        super().__init__(f"vmrun {command} failed ({returncode}): {output.strip()}")


class VmrunHost:
    """Async wrapper around vmrun for one VMware host."""

    def __init__(self, config: FusionConfig) -> None:
        self._vmrun = config.vmrun_path
        self._host_type = config.host_type
        self._password = config.password

    async def _run(self, command: str, *args: str, auth: bool = False) -> str:
        argv = [self._vmrun, "-T", self._host_type]
        if auth and self._password:
            argv += ["-vp", self._password]
        argv += [command, *args]

        logger.debug("Running vmrun %s %s", command, " ".join(args))
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        stdout, _ = await proc.communicate()
        output = stdout.decode(errors="replace") if stdout else ""
        if proc.returncode != 0:
            raise VmrunError(command, proc.returncode, output)
        return output

    async def connect(self) -> None:
        """Check that vmrun can reach the host."""
        await self.list_running()

    async def list_running(self) -> list[str]:
        """Return the VMX paths of running VMs."""
        output = await self._run("list")
        lines = [line.strip() for line in output.splitlines()]
        # First line is "Total running VMs: N"
        return [line for line in lines[1:] if line]

    async def clone(self, source_vmx: str, dest_vmx: str, clone_name: str) -> None:
        """Full clone of source_vmx into dest_vmx."""
        await self._run(
            "clone", source_vmx, dest_vmx, "full", f"-cloneName={clone_name}", auth=True
        )

    async def start(self, vmx_path: str, gui: bool = False) -> None:
        await self._run("start", vmx_path, "gui" if gui else "nogui")

    async def stop(self, vmx_path: str, hard: bool = True) -> None:
        await self._run("stop", vmx_path, "hard" if hard else "soft")


_DEFAULT_VMX_ENCODING = "UTF-8"


def _vmx_encoding(raw: bytes) -> str:
    """Codec named by the file's ``.encoding`` key, UTF-8 when absent or unknown."""
    for line in raw.decode("latin-1").splitlines():
        key, sep, value = line.partition("=")
        if sep and key.strip() == ".encoding":
            name = value.strip().strip('"')
            try:
                codecs.lookup(name)
            except LookupError:
                break
            return name
    return _DEFAULT_VMX_ENCODING


def read_vmx(path: str | Path) -> dict[str, str]:
    """Parse a .vmx file into an ordered mapping.

    VMware writes .vmx files in the host codepage and records it under
    ``.encoding``; undecodable bytes are replaced rather than raised.
    """
    raw = Path(path).read_bytes()
    text = raw.decode(_vmx_encoding(raw), errors="replace")
    values: dict[str, str] = {}
    for line in (raw_line.strip() for raw_line in text.splitlines()):
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        values[key.strip()] = value.strip().strip('"')
    return values


def write_vmx(path: str | Path, values: dict[str, str]) -> None:
    """Write values as a .vmx file in its declared encoding, preserving key order."""
    encoding = values.get(".encoding", _DEFAULT_VMX_ENCODING)
    try:
        codecs.lookup(encoding)
    except LookupError:
        encoding = _DEFAULT_VMX_ENCODING
    lines = [f'{key} = "{value}"' for key, value in values.items()]
    Path(path).write_text("\n".join(lines) + "\n", encoding=encoding, errors="replace")


def update_vmx(path: str | Path, updates: dict[str, str]) -> None:
    """Set keys in an existing .vmx file."""
    values = read_vmx(path)
    values.update(updates)
    write_vmx(path, values)
