"""
Optimizer Process Runner — launches the external sequencing engine.

The engine is a black box: it receives the resolved parameters as command
line arguments, prints progress lines, and prints ``PROCESSED_COUNT: <n>``
when it is done. This module only launches it and captures its output; the
run lifecycle lives in ``optimization.orchestrator``.

Tests substitute any object with an ``async run(params) -> ProcessResult``
method for the subprocess implementation.
"""

import asyncio
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import structlog

from core.errors import ExternalProcessFailure
from optimization.resolver import ResolvedParameters

logger = structlog.get_logger()

READ_CHUNK_BYTES = 4096


@dataclass(frozen=True)
class ProcessResult:
    exit_code: int
    stdout: str
    stderr: str


class OptimizerRunner(Protocol):
    async def run(self, params: ResolvedParameters) -> ProcessResult: ...


class SubprocessOptimizerRunner:
    """Run ``<python> <script> <args...>`` in ``workdir`` without a shell."""

    def __init__(self, python: str, script: str, workdir: str | None = None):
        self.python = python
        self.script = script
        self.workdir = workdir

    def command(self, params: ResolvedParameters) -> list[str]:
        return [self.python, self.script, *params.to_cli_args()]

    async def run(self, params: ResolvedParameters) -> ProcessResult:
        command = self.command(params)
        env = {**os.environ, "PYTHONIOENCODING": "utf-8"}
        logger.info("optimizer.process_launch", command=command, cwd=self.workdir)

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                cwd=self.workdir,
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ExternalProcessFailure(f"Could not start optimizer: {exc}") from exc

        stdout, stderr = await asyncio.gather(
            _collect(process.stdout, "stdout"),
            _collect(process.stderr, "stderr"),
        )
        exit_code = await process.wait()
        logger.info("optimizer.process_exit", pid=process.pid, exit_code=exit_code)
        return ProcessResult(exit_code=exit_code, stdout=stdout, stderr=stderr)


async def _collect(stream: asyncio.StreamReader | None, stream_name: str) -> str:
    """
    Read a pipe to EOF chunk by chunk. Partial chunks are joined before line
    splitting, so a line cut across two reads is logged once and intact.
    """
    if stream is None:
        return ""

    chunks: list[bytes] = []
    pending = bytearray()
    while True:
        chunk = await stream.read(READ_CHUNK_BYTES)
        if not chunk:
            break
        chunks.append(chunk)
        if b"\n" not in chunk:
            pending.extend(chunk)
            continue
        head, *lines, tail = chunk.split(b"\n")
        pending.extend(head)
        _log_line(stream_name, bytes(pending))
        for line in lines:
            _log_line(stream_name, line)
        pending = bytearray(tail)
    if pending:
        _log_line(stream_name, pending)

    return b"".join(chunks).decode("utf-8", errors="replace")


def _log_line(stream_name: str, raw: bytes) -> None:
    text = raw.decode("utf-8", errors="replace").rstrip("\r")
    if text:
        logger.debug("optimizer.output", stream=stream_name, line=text)


def build_runner(settings) -> SubprocessOptimizerRunner:
    """Construct the subprocess runner from application settings."""
    workdir = Path(settings.optimizer_workdir)
    if not workdir.is_absolute():
        workdir = Path(__file__).resolve().parent.parent / workdir
    return SubprocessOptimizerRunner(
        python=settings.optimizer_python,
        script=settings.optimizer_script,
        workdir=str(workdir),
    )
