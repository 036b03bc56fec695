# livereload.py
from __future__ import annotations

import asyncio
import json
import logging
import socket
from typing import Optional, Set

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import Response
from pydantic import BaseModel, Field

from .ui.console import get_console

logger = logging.getLogger(__name__)

PROTOCOL_7 = "http://livereload.com/protocols/official-7"
DEFAULT_PORT = 35729

# -------------------- Messages --------------------

class HelloMessage(BaseModel):
    command: str = "hello"
    protocols: list[str] = Field(default_factory=lambda: [PROTOCOL_7])
    serverName: str = "assetflow"

class ReloadMessage(BaseModel):
    command: str = "reload"
    path: str
    liveCSS: bool = True


CLIENT_JS = """\
(function () {
  var script = document.currentScript;
  var origin = script ? new URL(script.src) : location;
  var ws = new WebSocket("ws://" + origin.hostname + ":%(port)d/livereload");
  ws.onopen = function () {
    ws.send(JSON.stringify({command: "hello", protocols: ["%(protocol)s"]}));
  };
  ws.onmessage = function (event) {
    var msg = JSON.parse(event.data);
    if (msg.command !== "reload") { return; }
    if (msg.liveCSS && /\\.css$/.test(msg.path)) {
      var links = document.querySelectorAll('link[rel="stylesheet"]');
      for (var i = 0; i < links.length; i++) {
        var href = links[i].href.replace(/[?&]livereload=\\d+/, "");
        links[i].href = href + (href.indexOf("?") < 0 ? "?" : "&") + "livereload=" + Date.now();
      }
      return;
    }
    location.reload();
  };
})();
"""


def livereload_snippet(port: int = DEFAULT_PORT) -> str:
    """Loader appended to a script bundle for browsers without the extension."""
    return (
        "document.write('<script src=\"http://' + (location.host || 'localhost').split(':')[0] + "
        f"':{port}/livereload.js?snipver=1\"></' + 'script>');\n"
    )


# -------------------- Emitter --------------------

class LiveReloadEmitter:
    """
    Local LiveReload server.

    Clients connect to /livereload; `announce(path)` pushes a reload to all
    of them. No acknowledgement and no backfill for late clients.
    """

    def __init__(self, host: str = "127.0.0.1", port: int = DEFAULT_PORT, *, server_name: str = "assetflow"):
        self.host = host
        self.port = port
        self.server_name = server_name
        self.clients: Set[WebSocket] = set()
        self.app = self._build_app()
        self._server: Optional[uvicorn.Server] = None
        self._serve_task: Optional[asyncio.Task] = None

    @property
    def script_url(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"http://{host}:{self.port}/livereload.js"

    def _build_app(self) -> FastAPI:
        app = FastAPI(title="assetflow live reload")

        @app.get("/livereload.js")
        async def client_script() -> Response:
            body = CLIENT_JS % {"port": self.port, "protocol": PROTOCOL_7}
            return Response(content=body, media_type="application/javascript")

        @app.websocket("/livereload")
        async def livereload(websocket: WebSocket) -> None:
            await websocket.accept()
            self.clients.add(websocket)
            logger.debug("live reload client connected (%d total)", len(self.clients))
            try:
                while True:
                    raw = await websocket.receive_text()
                    try:
                        msg = json.loads(raw)
                    except json.JSONDecodeError:
                        logger.debug("ignoring non-JSON live reload message: %r", raw[:80])
                        continue
                    if isinstance(msg, dict) and msg.get("command") == "hello":
                        hello = HelloMessage(serverName=self.server_name)
                        await websocket.send_json(hello.model_dump())
            except WebSocketDisconnect:
                pass
            finally:
                self.clients.discard(websocket)
                logger.debug("live reload client left (%d total)", len(self.clients))

        return app

    async def announce(self, path: str) -> int:
        """Send a reload for `path` to every client; returns how many got it."""
        clients = list(self.clients)
        if not clients:
            return 0

        payload = ReloadMessage(path=path).model_dump()
        results = await asyncio.gather(
            *(c.send_json(payload) for c in clients),
            return_exceptions=True,
        )

        delivered = 0
        for client, r in zip(clients, results):
            if isinstance(r, BaseException):
                logger.debug("dropping live reload client: %s", r)
                self.clients.discard(client)
            else:
                delivered += 1

        get_console().print_reload(path, delivered)
        return delivered

    # -------------------- Lifecycle --------------------

    async def start(self) -> None:
        if self._server is not None:
            return

        # Bind here so a busy port raises OSError instead of exiting uvicorn.
        sock = self._bind()
        self.port = sock.getsockname()[1]

        config = uvicorn.Config(self.app, log_level="warning", lifespan="off")
        self._server = uvicorn.Server(config)
        self._serve_task = asyncio.create_task(self._server.serve(sockets=[sock]))

        while not self._server.started:
            if self._serve_task.done():
                self._serve_task.result()
                break
            await asyncio.sleep(0.01)
        logger.info("live reload listening on %s:%d", self.host, self.port)

    def _bind(self) -> socket.socket:
        """Bind the first usable address for host; the family follows the name (IPv4 or IPv6)."""
        infos = socket.getaddrinfo(self.host, self.port, type=socket.SOCK_STREAM, flags=socket.AI_PASSIVE)
        last: Optional[OSError] = None
        for family, socktype, proto, _, addr in infos:
            sock = socket.socket(family, socktype, proto)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            try:
                sock.bind(addr)
            except OSError as e:
                sock.close()
                last = e
                continue
            return sock
        raise last or OSError(f"cannot resolve {self.host}")

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.should_exit = True
        if self._serve_task is not None:
            await self._serve_task
        self._server = None
        self._serve_task = None
        self.clients.clear()

    async def __aenter__(self) -> "LiveReloadEmitter":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()
