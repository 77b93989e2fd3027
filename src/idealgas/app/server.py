"""Snapshot stream for external renderers.

Every client gets its own ack window. A snapshot is sent to a client only
while that client has fewer than ``AppConfig.snapshot_backlog`` snapshots it
has not acknowledged; otherwise the frame is skipped for that client alone.
Nothing is buffered while no client is connected.

Client messages are JSON objects:

* ``{"type": "ack", "tick": N}`` releases every snapshot up to tick ``N``.
* ``{"type": "status"}`` is answered with a ``status`` message.

Anything else, including malformed JSON, is ignored.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from contextlib import asynccontextmanager, suppress
from dataclasses import asdict, dataclass
from typing import Any, Dict

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from ..sim.core.config import AppConfig
from ..sim.core.world import World

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueuedSnapshot:
    tick: int
    payload: str


class ClientSession:
    def __init__(self, websocket: WebSocket, backlog: int) -> None:
        self.websocket = websocket
        self.backlog = max(1, backlog)
        self.unacked: deque[QueuedSnapshot] = deque()
        self.skipped = 0

    @property
    def window_open(self) -> bool:
        return len(self.unacked) < self.backlog

    def acknowledge(self, tick: int) -> None:
        while self.unacked and self.unacked[0].tick <= tick:
            self.unacked.popleft()

    async def deliver(self, snapshot: QueuedSnapshot) -> bool:
        if not self.window_open:
            self.skipped += 1
            return False
        await self.websocket.send_text(snapshot.payload)
        self.unacked.append(snapshot)
        return True


class SimulationController:
    def __init__(self, config: AppConfig):
        self.config = config
        self.world = World(config.simulation)
        self.broadcast_interval = max(1, config.broadcast_interval)
        self.running = False
        self.speed_multiplier = 1.0
        self.sessions: Dict[WebSocket, ClientSession] = {}
        self._lock = asyncio.Lock()
        self._loop_task: asyncio.Task | None = None

    @property
    def tick(self) -> int:
        return self.world.tick

    @property
    def pending_snapshots(self) -> int:
        return sum(len(session.unacked) for session in self.sessions.values())

    async def start(self) -> None:
        if self._loop_task is None:
            self._loop_task = asyncio.create_task(self._loop())
        self.running = True

    async def stop(self) -> None:
        self.running = False

    async def shutdown(self) -> None:
        self.running = False
        task, self._loop_task = self._loop_task, None
        if task is not None:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task

    async def reset(self) -> None:
        async with self._lock:
            self.world.reset()
        for session in self.sessions.values():
            session.unacked.clear()
        await self.broadcast()

    async def step_once(self) -> None:
        async with self._lock:
            self.world.step()
        if self.world.tick % self.broadcast_interval == 0:
            await self.broadcast()

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.tick_interval / self.speed_multiplier)
            if self.running:
                await self.step_once()

    async def connect(self, websocket: WebSocket) -> ClientSession:
        session = ClientSession(websocket, self.config.snapshot_backlog)
        self.sessions[websocket] = session
        await session.deliver(self.serialize_snapshot())
        return session

    def disconnect(self, websocket: WebSocket) -> None:
        session = self.sessions.pop(websocket, None)
        if session is not None:
            logger.info("Snapshot client left (%d frames skipped)", session.skipped)

    async def handle_message(self, session: ClientSession, message: str) -> None:
        try:
            payload = json.loads(message)
        except json.JSONDecodeError:
            return
        if not isinstance(payload, dict):
            return
        kind = payload.get("type")
        if kind == "ack":
            tick = payload.get("tick")
            if isinstance(tick, int) and not isinstance(tick, bool):
                session.acknowledge(tick)
        elif kind == "status":
            await session.websocket.send_text(json.dumps({"type": "status", **self.status()}))

    def status(self) -> Dict[str, Any]:
        snapshot = self.world.snapshot()
        return {
            "running": self.running,
            "tick": self.tick,
            "population": len(self.world.particles),
            "clients": len(self.sessions),
            "metrics": asdict(snapshot.metrics),
        }

    def serialize_snapshot(self) -> QueuedSnapshot:
        snapshot = self.world.snapshot()
        payload = {
            "type": "snapshot",
            "tick": snapshot.tick,
            "payload": {
                "metrics": asdict(snapshot.metrics),
                "particles": snapshot.particles,
                "world": asdict(snapshot.world),
                "metadata": asdict(snapshot.metadata),
            },
        }
        return QueuedSnapshot(tick=snapshot.tick, payload=json.dumps(payload))

    async def broadcast(self) -> None:
        if not self.sessions:
            return
        snapshot = self.serialize_snapshot()
        for websocket, session in list(self.sessions.items()):
            try:
                await session.deliver(snapshot)
            except (WebSocketDisconnect, RuntimeError):
                # RuntimeError: the socket was already closed underneath us.
                self.disconnect(websocket)


def create_app(controller: SimulationController) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await controller.start()
        logger.info("Simulation loop started")
        yield
        await controller.shutdown()
        logger.info("Simulation loop stopped")

    app = FastAPI(title="Ideal Gas Simulation", lifespan=lifespan)
    app.state.controller = controller

    @app.get("/api/status")
    async def status() -> JSONResponse:
        return JSONResponse(controller.status())

    @app.post("/api/control/start")
    async def start_simulation() -> JSONResponse:
        controller.running = True
        return JSONResponse({"running": True})

    @app.post("/api/control/stop")
    async def stop_simulation() -> JSONResponse:
        await controller.stop()
        return JSONResponse({"running": False})

    @app.post("/api/control/reset")
    async def reset_simulation() -> JSONResponse:
        await controller.reset()
        return JSONResponse({"running": controller.running, "tick": controller.tick})

    @app.post("/api/control/speed")
    async def set_speed(payload: dict) -> JSONResponse:
        speed = float(payload.get("multiplier", 1.0))
        controller.speed_multiplier = max(0.1, min(5.0, speed))
        return JSONResponse({"multiplier": controller.speed_multiplier})

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        await websocket.accept()
        try:
            session = await controller.connect(websocket)
            while True:
                message = await websocket.receive_text()
                await controller.handle_message(session, message)
        except WebSocketDisconnect:
            pass
        finally:
            controller.disconnect(websocket)

    return app


controller = SimulationController(AppConfig())
app = create_app(controller)

__all__ = ["app", "controller", "create_app", "SimulationController", "ClientSession"]
