"""
File and process actions available to recipes

External commands run through asyncio subprocesses, limited by a semaphore
so that at most `jobs` tools run at the same time.
"""

import asyncio
import os
import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..errors import ExternalToolFailure
from ..utils.logging import FontPlanLogger

Arg = Union[str, Path, int, float, Iterable]


def flatten_args(args: Iterable[Arg]) -> List[str]:
    """Flatten nested argument lists into a command line"""
    result = []
    for arg in args:
        if arg is None:
            continue
        if isinstance(arg, (str, Path, int, float)):
            result.append(str(arg))
        else:
            result.extend(flatten_args(arg))
    return result


class Actions:
    def __init__(self, jobs: Optional[int] = None):
        self.jobs = jobs or os.cpu_count() or 1
        self._slots = asyncio.Semaphore(self.jobs)

    async def run(self, *args: Arg, cwd: Optional[Union[str, Path]] = None) -> str:
        """Run an external command and return its combined output.

        Raises:
            ExternalToolFailure: If the command is missing or exits non-zero
        """
        command = flatten_args(args)
        async with self._slots:
            FontPlanLogger.debug(f"Run: {' '.join(command)}" + (f" (in {cwd})" if cwd else ""))
            try:
                proc = await asyncio.create_subprocess_exec(
                    *command,
                    cwd=str(cwd) if cwd else None,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.STDOUT,
                )
            except FileNotFoundError as e:
                raise ExternalToolFailure(command, 127, str(e)) from e
            output, _ = await proc.communicate()
        text = output.decode("utf-8", errors="replace") if output else ""
        if proc.returncode != 0:
            raise ExternalToolFailure(command, proc.returncode, text.strip())
        return text

    async def cp(self, src: Union[str, Path], dst: Union[str, Path]) -> None:
        src, dst = Path(src), Path(dst)
        if src.is_dir():
            await asyncio.to_thread(shutil.copytree, src, dst, dirs_exist_ok=True)
        else:
            dst.parent.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(shutil.copy2, src, dst)

    async def mv(self, src: Union[str, Path], dst: Union[str, Path]) -> None:
        Path(dst).parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(shutil.move, str(src), str(dst))

    async def rm(self, path: Union[str, Path]) -> None:
        path = Path(path)
        if path.is_dir():
            await asyncio.to_thread(shutil.rmtree, path)
        elif path.exists():
            path.unlink()
