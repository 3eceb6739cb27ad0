"""I/O collaborators injected into the resolver.

Every side effect the resolver performs (file reads, subprocess calls, HTTP
requests, reading the clock and the environment) goes through one of the
objects held by :class:`AuthCollaborators`, so tests and pinjected designs can
swap any of them out.
"""

import asyncio
import os
import shutil
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Protocol

import httpx


class FileReader(Protocol):
    def exists(self, path: str) -> bool: ...

    async def a_read_text(self, path: str) -> str: ...


class LocalFileReader:
    def exists(self, path: str) -> bool:
        return Path(path).exists()

    async def a_read_text(self, path: str) -> str:
        """
        Read a file through symlinks.

        Raises:
            FileNotFoundError: missing file or a symlink to a missing target
            IsADirectoryError: the path (or its target) is a directory
        """

        def read():
            resolved = Path(path).resolve(strict=True)
            if resolved.is_dir():
                raise IsADirectoryError(f"{path} is a directory")
            return resolved.read_text(encoding="utf-8")

        return await asyncio.get_running_loop().run_in_executor(None, read)


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: str
    stderr: str = ""


class CommandRunner(Protocol):
    async def __call__(self, *args: str) -> CommandResult: ...


class SubprocessRunner:
    async def __call__(self, *args: str) -> CommandResult:
        executable = shutil.which(args[0])
        if executable is None:
            raise FileNotFoundError(f"{args[0]} not found on PATH")
        proc = await asyncio.create_subprocess_exec(
            executable,
            *args[1:],
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await proc.communicate()
        return CommandResult(
            returncode=proc.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )


class Clock(Protocol):
    def now_millis(self) -> int: ...


class SystemClock:
    def now_millis(self) -> int:
        return int(time.time() * 1000)


@dataclass
class AuthCollaborators:
    http_client: httpx.AsyncClient = field(
        default_factory=lambda: httpx.AsyncClient(timeout=30.0)
    )
    file_reader: FileReader = field(default_factory=LocalFileReader)
    command_runner: CommandRunner = field(default_factory=SubprocessRunner)
    clock: Clock = field(default_factory=SystemClock)
    environ: Mapping[str, str] = field(default_factory=lambda: os.environ)
    platform: str = sys.platform

    def getenv(self, name: str) -> str | None:
        # an empty value counts as unset
        return self.environ.get(name) or None

    @property
    def is_windows(self) -> bool:
        return self.platform.startswith("win")

    async def aclose(self):
        await self.http_client.aclose()
