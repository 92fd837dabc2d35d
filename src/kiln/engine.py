"""Build engine — produces the bundled application artifact.

The dev server only needs something it can ask to ``rebuild()``; the
:class:`BuildEngine` protocol captures that.  :class:`EsbuildEngine` is the
real implementation: it drives the ``esbuild`` executable as a subprocess.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from kiln._errors import BuildError

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path


@runtime_checkable
class BuildEngine(Protocol):
    """Anything that can rebuild the application artifact on demand.

    ``rebuild()`` raises on failure.  It may be called again while a
    previous call is still running; implementations serialize internally.
    """

    async def rebuild(self) -> None: ...


class EsbuildEngine:
    """Bundle an entry point with the esbuild CLI.

    Equivalent to::

        esbuild <entry> --bundle --sourcemap=inline --outfile=<outfile> \\
            --define:process.env.NAME="value" ...

    Concurrent ``rebuild()`` calls queue on an internal lock so two
    esbuild processes never write the same outfile at once.

    Args:
        entry: Entry point to bundle.
        outfile: Path of the bundled output file.
        defines: Global identifier replacements passed as ``--define``.
        executable: Name or path of the esbuild binary.
        cwd: Working directory for the subprocess.

    """

    def __init__(
        self,
        entry: Path,
        outfile: Path,
        *,
        defines: Mapping[str, str] | None = None,
        executable: str = "esbuild",
        cwd: Path | None = None,
    ) -> None:
        self._entry = entry
        self._outfile = outfile
        self._defines = dict(defines or {})
        self._executable = executable
        self._cwd = cwd
        self._lock = asyncio.Lock()
        self._builds = 0

    @property
    def build_count(self) -> int:
        """Number of successful builds so far."""
        return self._builds

    def command(self) -> list[str]:
        """The esbuild argument vector for one build."""
        args = [
            self._executable,
            str(self._entry),
            "--bundle",
            "--sourcemap=inline",
            f"--outfile={self._outfile}",
        ]
        args.extend(f"--define:{name}={value}" for name, value in self._defines.items())
        return args

    async def rebuild(self) -> None:
        """Run esbuild once.

        Raises:
            BuildError: If esbuild cannot be started or exits non-zero.

        """
        async with self._lock:
            try:
                proc = await asyncio.create_subprocess_exec(
                    *self.command(),
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    cwd=self._cwd,
                )
            except OSError as exc:
                msg = f"Could not run {self._executable!r}: {exc}"
                raise BuildError(msg) from exc

            _stdout, stderr = await proc.communicate()
            if proc.returncode != 0:
                detail = stderr.decode("utf-8", errors="replace").strip()
                msg = f"esbuild exited with status {proc.returncode}"
                if detail:
                    msg = f"{msg}:\n{detail}"
                raise BuildError(msg)

            self._builds += 1
