from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Awaitable, Callable, Sequence


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    # Captured outcome of a single external command invocation.
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def diagnostics(self) -> str:
        # Prefer stderr since dump/restore tools report progress and errors there.
        return (self.stderr or self.stdout).strip()


CommandRunner = Callable[[Sequence[str]], Awaitable[ProcessResult]]


async def run_command(args: Sequence[str]) -> ProcessResult:
    # Run one external command without a shell and wait for it to exit.
    logger.debug("process_start command=%s", args[0])
    process = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()
    result = ProcessResult(
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="ignore"),
        stderr=stderr.decode("utf-8", errors="ignore"),
    )
    logger.debug("process_exit command=%s returncode=%s", args[0], result.returncode)
    return result
