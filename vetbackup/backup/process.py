"""External process invocation for the native dump and restore tools."""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Sequence

from vetbackup.config.logging_config import get_logger
from vetbackup.core.error_handling import ExternalToolError

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    """Exit status and captured output of a finished process."""

    args: Sequence[str]
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class ProcessRunner(Protocol):
    """Runs an executable to completion.

    Implementations raise ``ExternalToolError`` when the executable cannot be
    started or exceeds ``timeout``; a nonzero exit is returned, not raised.
    """

    async def run(self, args: Sequence[str], timeout: Optional[float] = None) -> ProcessResult:
        ...


class SubprocessRunner:
    """``ProcessRunner`` backed by asyncio subprocesses (no shell)."""

    async def run(self, args: Sequence[str], timeout: Optional[float] = None) -> ProcessResult:
        tool = args[0]
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise ExternalToolError(
                f"{tool} command not found. Please install the MongoDB database tools.",
                tool=tool,
            )
        except OSError as e:
            raise ExternalToolError(f"{tool} could not be executed: {e}", tool=tool) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ExternalToolError(
                f"{tool} exceeded the {timeout:g}s deadline and was killed",
                tool=tool,
            )

        return ProcessResult(
            args=tuple(args),
            exit_code=process.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )


class MongoTools:
    """Builds and runs ``mongodump`` / ``mongorestore`` invocations."""

    def __init__(
        self,
        runner: ProcessRunner,
        uri: str,
        dump_command: str = "mongodump",
        restore_command: str = "mongorestore",
        timeout: Optional[float] = None,
    ):
        self.runner = runner
        self.uri = uri
        self.dump_command = dump_command
        self.restore_command = restore_command
        self.timeout = timeout

    async def dump(self, out_dir: Path) -> ProcessResult:
        """Dump the whole database into ``out_dir``."""
        args = [self.dump_command, f"--uri={self.uri}", f"--out={out_dir}"]
        logger.info(f"Starting database dump into {out_dir}")
        return await self._run(args)

    async def restore(self, dump_dir: Path, drop: bool = True) -> ProcessResult:
        """Load a dump directory, dropping each collection first when ``drop``."""
        args = [self.restore_command, f"--uri={self.uri}", f"--dir={dump_dir}"]
        if drop:
            args.append("--drop")
        logger.info(f"Starting database restore from {dump_dir}")
        return await self._run(args)

    async def _run(self, args: Sequence[str]) -> ProcessResult:
        tool = args[0]
        result = await self.runner.run(args, timeout=self.timeout)
        if not result.ok:
            stderr = result.stderr.strip()
            logger.error(f"{tool} failed with return code {result.exit_code}: {stderr}")
            raise ExternalToolError(
                f"{tool} failed with return code {result.exit_code}",
                tool=tool,
                exit_code=result.exit_code,
                stderr=stderr,
            )
        logger.info(f"{tool} completed successfully")
        return result
