"""Static file serving — the output directory over HTTP.

Files come from Chirp's ``StaticFiles`` mounted at ``/`` over the served
root; it maps ``/`` and directories onto their ``index.html`` and keeps
requests inside the root.  :class:`DevFiles` sits in front of it and adds
the dev-server behaviour:

- a miss is always a plain-text ``404 Not found``;
- with live reload on, ``index.html`` responses get a small script, injected
  by Chirp's ``HTMLInject`` before ``</body>``, that reloads the page
  whenever the reload stream sends a message.  Other HTML files are served
  as they are.

``/__reload`` is not a file, so it falls through ``StaticFiles`` to the
reload route when one is registered, and 404s otherwise.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from chirp import App
    from chirp.http.request import Request
    from chirp.http.response import Response
    from chirp.middleware.protocol import Next

    from kiln.server.hub import ReloadHub


RELOAD_PATH = "/__reload"
NOT_FOUND_BODY = "Not found"

RELOAD_SCRIPT = """
<script>
  const es = new EventSource('/__reload');
  es.onmessage = () => location.reload();
</script>
"""

# Statuses from the file layer that are answered as "Not found"
_MISS_STATUSES = frozenset({403, 404})


def is_index_request(url_path: str) -> bool:
    """Whether *url_path* names an ``index.html``, directly or as a directory."""
    path = url_path.partition("?")[0]
    return path.endswith("/") or path.rsplit("/", 1)[-1] == "index.html"


class DevFiles:
    """Chirp middleware in front of ``StaticFiles``.

    Args:
        live_reload: Inject the reload script into ``index.html`` responses.

    """

    def __init__(self, *, live_reload: bool = False) -> None:
        from chirp.middleware import HTMLInject

        self._inject = HTMLInject(RELOAD_SCRIPT) if live_reload else None

    @property
    def live_reload(self) -> bool:
        return self._inject is not None

    async def __call__(self, request: Request, next: Next) -> Response:
        if self._inject is not None and is_index_request(request.path):
            response = await self._inject(request, next)
        else:
            response = await next(request)

        if getattr(response, "status", 200) in _MISS_STATUSES:
            return _not_found()
        return response


def _not_found() -> Response:
    from chirp.http.response import Response

    return Response(
        body=NOT_FOUND_BODY,
        status=404,
        content_type="text/plain; charset=utf-8",
    )


def create_app(root: Path, hub: ReloadHub | None = None) -> App:
    """Create the Chirp app serving *root*.

    Passing a *hub* turns on live reload: the ``/__reload`` SSE route is
    registered and ``index.html`` responses carry the reload script.
    Without a hub ``/__reload`` is an ordinary path and 404s.

    """
    from chirp import App, AppConfig
    from chirp.middleware import StaticFiles

    app = App(config=AppConfig(debug=hub is not None))

    # First added is outermost
    app.add_middleware(DevFiles(live_reload=hub is not None))
    app.add_middleware(StaticFiles(directory=root, prefix="/", cache_control="no-cache"))

    if hub is not None:
        async def reload_events(request: Request) -> object:  # noqa: ARG001
            return hub.response()

        app.route(RELOAD_PATH, name="kiln:reload")(reload_events)

    return app
