from __future__ import annotations

import asyncio
import re
import threading
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional, Set

import uvicorn
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse, HTMLResponse
from pydantic import BaseModel

from .errors import AssetflowError
from .log import get_logger
from .reload import ReloadChannel, ReloadEvent


LIVERELOAD_PATH = "/__livereload"
STATUS_PATH = "/__assetflow/status"

CLIENT_SCRIPT = """<script>
(function () {
  var proto = location.protocol === "https:" ? "wss" : "ws";
  var ws = new WebSocket(proto + "://" + location.host + "%s");
  ws.onmessage = function (e) {
    var msg = JSON.parse(e.data);
    if (msg.type !== "reload") return;
    if (msg.css_only) {
      document.querySelectorAll('link[rel="stylesheet"]').forEach(function (link) {
        var url = new URL(link.href);
        url.searchParams.set("_r", Date.now());
        link.href = url.toString();
      });
    } else {
      location.reload();
    }
  };
})();
</script>
""" % LIVERELOAD_PATH

_BODY_CLOSE = re.compile(r"</body\s*>", re.I)

log = get_logger("assetflow.server")


# -------------------- Schemas --------------------

class StatusResponse(BaseModel):
    root: str
    clients: int
    reloads: int


class ReloadMessage(BaseModel):
    type: str = "reload"
    task: str
    paths: list[str]
    css_only: bool


# -------------------- Live reload --------------------

class LiveReloadHub:
    """Connected browsers, plus the thread-safe entry point for reload events."""

    def __init__(self):
        self.clients: Set[WebSocket] = set()
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self.reloads = 0

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        self.loop = asyncio.get_running_loop()
        self.clients.add(ws)

    def disconnect(self, ws: WebSocket) -> None:
        self.clients.discard(ws)

    async def broadcast(self, message: dict) -> None:
        for ws in list(self.clients):
            try:
                await ws.send_json(message)
            except (WebSocketDisconnect, RuntimeError):
                self.disconnect(ws)

    async def close_all(self) -> None:
        for ws in list(self.clients):
            try:
                await ws.close(code=1001)
            except RuntimeError:
                pass
            self.disconnect(ws)

    def notify(self, event: ReloadEvent) -> None:
        """Called from task threads; hops onto the server loop."""
        message = ReloadMessage(
            task=event.task,
            paths=[str(p) for p in event.paths],
            css_only=event.css_only,
        ).model_dump()
        self.reloads += 1
        loop = self.loop
        if loop is None or loop.is_closed():
            return
        asyncio.run_coroutine_threadsafe(self.broadcast(message), loop)


def inject_client(html: str) -> str:
    matches = list(_BODY_CLOSE.finditer(html))
    if not matches:
        return html + CLIENT_SCRIPT
    at = matches[-1].start()
    return html[:at] + CLIENT_SCRIPT + html[at:]


# -------------------- App --------------------

def create_app(root: str | Path, channel: ReloadChannel | None = None, hub: LiveReloadHub | None = None) -> FastAPI:
    root_path = Path(root).resolve()
    hub = hub or LiveReloadHub()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        hub.loop = asyncio.get_running_loop()
        unsubscribe = channel.subscribe(hub.notify) if channel is not None else None
        try:
            yield
        finally:
            if unsubscribe is not None:
                unsubscribe()
            await hub.close_all()

    app = FastAPI(title="assetflow dev server", lifespan=lifespan)
    app.state.hub = hub
    app.state.root = root_path

    @app.websocket(LIVERELOAD_PATH)
    async def livereload(ws: WebSocket):
        await hub.connect(ws)
        try:
            while True:
                await ws.receive_text()
        except WebSocketDisconnect:
            hub.disconnect(ws)

    @app.get(STATUS_PATH, response_model=StatusResponse)
    async def status():
        return StatusResponse(root=str(root_path), clients=len(hub.clients), reloads=hub.reloads)

    @app.get("/{path:path}")
    async def serve_file(path: str):
        target = (root_path / path).resolve()
        if not target.is_relative_to(root_path):
            raise HTTPException(status_code=404, detail="Not found")
        if target.is_dir():
            target = target / "index.html"
        if not target.is_file():
            raise HTTPException(status_code=404, detail="Not found")
        if target.suffix.lower() in (".html", ".htm"):
            html = target.read_text(encoding="utf-8", errors="replace")
            return HTMLResponse(inject_client(html), headers={"Cache-Control": "no-store"})
        return FileResponse(target, headers={"Cache-Control": "no-store"})

    return app


# -------------------- Server --------------------

class DevServer:
    """Serve a directory on a background uvicorn thread."""

    def __init__(
        self,
        channel: ReloadChannel | None = None,
        *,
        host: str = "127.0.0.1",
        port: int = 3000,
        log_level: str = "warning",
        startup_timeout: float = 10.0,
    ):
        self.channel = channel
        self.host = host
        self.port = port
        self.log_level = log_level
        self.startup_timeout = startup_timeout
        self.app: Optional[FastAPI] = None
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def start(self, root: str | Path) -> str:
        if self.running:
            return self.url
        self.app = create_app(root, self.channel)
        config = uvicorn.Config(self.app, host=self.host, port=self.port, log_level=self.log_level)
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(target=self._server.run, name="assetflow-server", daemon=True)
        self._thread.start()

        deadline = time.monotonic() + self.startup_timeout
        while not self._server.started:
            if not self._thread.is_alive() or time.monotonic() > deadline:
                self.stop()
                raise AssetflowError(f"Dev server could not listen on {self.host}:{self.port}")
            time.sleep(0.05)
        log.info("Serving %s at %s", root, self.url)
        return self.url

    def stop(self) -> None:
        server, thread = self._server, self._thread
        self._server = None
        self._thread = None
        if server is not None:
            server.should_exit = True
        if thread is not None and thread.is_alive():
            thread.join(timeout=5)
