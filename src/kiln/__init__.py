"""kiln — bundle, copy, and serve a browser application.

Bundles an entry point with esbuild, copies static assets into the output
directory, and serves the result with live reload during development.

Quick start::

    import kiln

    kiln.build("my-app/")                       # One-shot bundle + copy
    kiln.serve("my-app/", copy=("public:",))    # Dev server with live reload

From the shell::

    kiln build
    kiln serve -p 8080 -c public:

"""

# PEP 703: Declare this module as free-threading safe
_Py_mod_gil = 0

__version__ = "0.1.0"
__all__ = [
    "KilnConfig",
    "__version__",
    "build",
    "serve",
]


def __getattr__(name: str) -> object:
    """Lazy imports for the public API.

    Keeps ``import kiln`` fast; the web stack is only imported when
    ``serve`` is first used.
    """
    if name == "KilnConfig":
        from kiln.config import KilnConfig

        return KilnConfig

    if name == "build":
        from kiln.app import build

        return build

    if name == "serve":
        from kiln.app import serve

        return serve

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
