"""SubprocessRunner — run the external package manager with a hard timeout."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Sequence

from conduit.types import ProcessOutcome

logger = logging.getLogger(__name__)


class SubprocessRunner:
    """Executes one external command per call and captures its output.

    Commands are always spawned from an argument vector
    (``asyncio.create_subprocess_exec``); nothing passes through a shell.
    """

    async def run(
        self,
        argv: Sequence[str],
        working_dir: Path,
        timeout: float,
    ) -> ProcessOutcome:
        """Run *argv* in *working_dir*, killing it after *timeout* seconds.

        Never raises for process-level problems: a missing executable, a
        non-zero exit and a timeout all come back as ``succeeded=False``.
        """
        command = [str(a) for a in argv]
        if not command:
            raise ValueError("argv must contain at least the program name")

        logger.debug("Running %s in %s (timeout %.0fs)", command, working_dir, timeout)
        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                cwd=str(working_dir),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError, NotADirectoryError) as exc:
            logger.warning("Could not start %s: %s", command[0], exc)
            return ProcessOutcome(
                succeeded=False,
                stderr=f"Could not start '{command[0]}': {exc}",
                command=command,
            )

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            # Reap the child so it is never left running detached
            await proc.wait()
            logger.warning("%s timed out after %ss and was killed", command[:3], timeout)
            return ProcessOutcome(
                succeeded=False,
                stderr=f"Process timed out after {timeout:g}s and was terminated",
                exit_code=proc.returncode,
                timed_out=True,
                command=command,
            )

        outcome = ProcessOutcome(
            succeeded=proc.returncode == 0,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            exit_code=proc.returncode,
            command=command,
        )
        if not outcome.succeeded:
            logger.warning(
                "%s exited %s: %s", command[:3], proc.returncode, outcome.stderr[:300]
            )
        return outcome
