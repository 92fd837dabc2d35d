"""kiln configuration.

KilnConfig is the central configuration object, frozen after creation.
"""

from dataclasses import dataclass, field
from pathlib import Path

from kiln._errors import ConfigError
from kiln.assets import CopyPair


@dataclass(frozen=True, slots=True)
class KilnConfig:
    """Configuration for a kiln build or serve session.

    Attributes:
        root: Project root.  Always resolved to an absolute path on construction.
        host: Bind address for serve mode.
        port: Bind port for serve mode (1-65535).
        dist: Output directory, relative to root unless absolute.
        entry: Bundle entry point, relative to root.
        output: Bundle file name, relative to the output directory.
        source_dir: Directory watched for source changes in serve mode.
        testing: Load ``.env.testing`` instead of ``.env.local``.
        watch: Enable file watching and live reload in serve mode.
        copy: Unresolved asset copy pairs (``from`` relative to root,
            ``to`` relative to the output directory).
        esbuild: Name or path of the esbuild executable.

    """

    root: Path = field(default_factory=Path.cwd)
    host: str = "127.0.0.1"
    port: int = 1234
    dist: Path = field(default_factory=lambda: Path("dist"))
    entry: str = "src/main.ts"
    output: str = "main.js"
    source_dir: str = "src"
    testing: bool = False
    watch: bool = True
    copy: tuple[CopyPair, ...] = ()
    esbuild: str = "esbuild"

    def __post_init__(self) -> None:
        if not self.root.is_absolute():
            object.__setattr__(self, "root", self.root.resolve())
        if isinstance(self.port, str) and self.port.strip().isdigit():
            object.__setattr__(self, "port", int(self.port))
        valid = isinstance(self.port, int) and not isinstance(self.port, bool)
        if not valid or not 0 < self.port <= 65535:
            msg = (
                f'Invalid port number: "{self.port}". '
                "Port must be a number between 1 and 65535."
            )
            raise ConfigError(msg)

    @property
    def dist_path(self) -> Path:
        """Absolute path to the output directory."""
        if self.dist.is_absolute():
            return self.dist
        return self.root / self.dist

    @property
    def entry_path(self) -> Path:
        """Absolute path to the bundle entry point."""
        return self.root / self.entry

    @property
    def outfile_path(self) -> Path:
        """Absolute path to the bundled output file."""
        return self.dist_path / self.output

    @property
    def source_path(self) -> Path:
        """Absolute path to the watched source directory."""
        return self.root / self.source_dir
