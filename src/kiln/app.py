"""kiln application — the build and serve entry points.

Both modes start the same way: load configuration, reset the output
directory, load ``.env`` files, resolve copy pairs and set up the esbuild
engine.  ``build`` then copies and bundles once; ``serve`` hands everything
to a :class:`~kiln.server.session.ServeSession`.
"""

import asyncio
import os
import shutil
import time
from pathlib import Path

from kiln._errors import ConfigError
from kiln.assets import CopyPair, copy_all_assets, resolve_pairs
from kiln.config import KilnConfig
from kiln.config_loader import load_config
from kiln.engine import EsbuildEngine
from kiln.envfile import env_defines, load_env
from kiln.observability import EventCollector


def prepare_output(dist: Path) -> None:
    """Remove and recreate the output directory.

    Raises:
        ConfigError: If *dist* cannot be cleared or created.

    """
    try:
        if dist.exists():
            shutil.rmtree(dist)
        dist.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        msg = f"Cannot prepare output directory {dist}: {exc}"
        raise ConfigError(msg) from exc


def create_engine(config: KilnConfig) -> EsbuildEngine:
    """Create the esbuild engine with every environment variable defined."""
    return EsbuildEngine(
        config.entry_path,
        config.outfile_path,
        defines=env_defines(os.environ),
        executable=config.esbuild,
        cwd=config.root,
    )


def _setup(root: str | Path, overrides: dict[str, object]) -> tuple[KilnConfig, tuple[CopyPair, ...]]:
    """Shared start of both modes: config, output dir, env, copy pairs."""
    config = load_config(Path(root), **overrides)
    prepare_output(config.dist_path)
    load_env(config.root, testing=config.testing)
    pairs = resolve_pairs(config.copy, config.root, config.dist_path)
    return config, pairs


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def build(root: str | Path = ".", **kwargs: object) -> None:
    """Bundle the application and copy static assets once.

    Args:
        root: Project root directory.
        **kwargs: Override KilnConfig fields.

    Raises:
        KilnError: If configuration, copying or bundling fails.

    """
    from kiln.banner import print_banner

    config, pairs = _setup(root, kwargs)
    engine = create_engine(config)

    t0 = time.perf_counter()
    asyncio.run(_build_once(engine, pairs))
    load_ms = (time.perf_counter() - t0) * 1000

    print_banner(config, "build", pairs=pairs, load_ms=load_ms)


async def _build_once(engine: EsbuildEngine, pairs: tuple[CopyPair, ...]) -> None:
    await copy_all_assets(pairs)
    await engine.rebuild()


def serve(root: str | Path = ".", **kwargs: object) -> None:
    """Serve the application, rebuilding and reloading on change.

    Runs the initial copy and build, then serves the output directory
    until interrupted.  With ``watch=True`` (the default) source and asset
    changes trigger a rebuild or re-copy and connected browsers reload.

    Args:
        root: Project root directory.
        **kwargs: Override KilnConfig fields.

    Raises:
        KilnError: If the initial copy or build fails or the port is taken.

    """
    from kiln.banner import print_banner
    from kiln.server.session import ServeSession

    config, pairs = _setup(root, kwargs)
    session = ServeSession(
        config,
        create_engine(config),
        pairs,
        collector=EventCollector(),
    )

    t0 = time.perf_counter()
    asyncio.run(session.prepare())
    load_ms = (time.perf_counter() - t0) * 1000

    print_banner(config, "serve", pairs=pairs, load_ms=load_ms)
    session.serve_forever()
