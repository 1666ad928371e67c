"""External image optimizers run as scoped subprocesses.

Both tools rewrite the file in place and signal failure through a non-zero
exit code.  Output streams are collected and logged once the process exits;
the caller resumes only on exit, never on partial output.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

from cdnforge.core.errors import ToolError

logger = logging.getLogger(__name__)


async def run_tool(binary: str, args: list[str], *, target: Path) -> str:
    """Run *binary* with *args*, returning its decoded stdout.

    Raises ``ToolError`` if the binary is missing or exits non-zero.
    """
    try:
        process = await asyncio.create_subprocess_exec(
            binary,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise ToolError(binary, str(target), 127, str(exc)) from exc

    stdout_bytes, stderr_bytes = await process.communicate()
    stdout = stdout_bytes.decode("utf-8", errors="replace")
    stderr = stderr_bytes.decode("utf-8", errors="replace")
    logger.debug("%s exited with code %s for %s", binary, process.returncode, target)
    if stdout.strip():
        logger.debug("%s: %s", binary, stdout.strip())

    if process.returncode != 0:
        raise ToolError(binary, str(target), process.returncode or -1, stderr)
    if stderr.strip():
        logger.debug("%s (stderr): %s", binary, stderr.strip())
    return stdout


async def optimize_png(path: Path, *, binary: str = "optipng") -> None:
    """Losslessly recompress a PNG in place."""
    await run_tool(binary, [str(path)], target=path)


async def optimize_jpeg(path: Path, *, binary: str = "jpegtran") -> None:
    """Strip metadata and optimize Huffman tables of a JPEG in place."""
    await run_tool(
        binary,
        ["-copy", "none", "-optimize", "-outfile", str(path), str(path)],
        target=path,
    )


def restore_mtime(path: Path, stat_result: os.stat_result) -> None:
    """Put back the timestamps captured in *stat_result* on *path*.

    Keeps the fingerprint of an optimized image identical across runs.
    """
    os.utime(path, ns=(stat_result.st_atime_ns, stat_result.st_mtime_ns))
