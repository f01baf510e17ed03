"""
mettagraph Layout Server
========================
FastAPI server hosting one parse/layout session for a graph UI.

Endpoints:
- GET / - Service banner
- GET /api/config - Effective configuration
- POST /api/parse - Parse a document and load it into the layout engine
- POST /api/validate - Syntax validation only
- POST /api/layout - Apply a layout and return the settled positions
- POST /api/layout/stop - Stop the running animation
- GET /api/layout/state - Layout animation snapshot
- POST /api/nodes/{node_id}/drag - Move one node
- POST /api/hit-test - Node under a screen position
- WS /ws - Stream target positions and animation frames for a layout
"""

import asyncio
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field, ValidationError

from mettagraph.core.legend import build_legend
from mettagraph.core.mapper import NodeMapper
from mettagraph.core.schema import (
    LayoutAlgorithm,
    LayoutOptions,
    ParseError,
    ParseResult,
    Point,
    Severity,
    ViewTransform,
)
from mettagraph.layout.engine import LayoutEngine
from mettagraph.parser.metta import MettaParser


# ============================================================================
# Configuration
# ============================================================================

def _load_mapper() -> NodeMapper:
    path = os.environ.get("METTAGRAPH_MAPPER_CONFIG")
    if path:
        print(f"[Server] Loading mapper config from {path}")
        return NodeMapper.from_json_file(path)
    return NodeMapper()


POSITION_SCALE = float(os.environ.get("METTAGRAPH_POSITION_SCALE", "2.0"))
AUTO_LAYOUT = os.environ.get("METTAGRAPH_AUTO_LAYOUT", LayoutAlgorithm.HIERARCHICAL.value)
FRAME_RATE = float(os.environ.get("METTAGRAPH_FRAME_RATE", "60"))


# ============================================================================
# Request Models
# ============================================================================

class TextRequest(BaseModel):
    text: str = ""


class LayoutRequest(BaseModel):
    algorithm: str = LayoutAlgorithm.FORCE_DIRECTED.value
    options: Dict[str, Any] = Field(default_factory=dict)


class HitTestRequest(BaseModel):
    position: Point
    transform: ViewTransform = Field(default_factory=ViewTransform)


# ============================================================================
# Session
# ============================================================================

class GraphSession:
    """Parser and layout engine shared by all requests of this server."""

    def __init__(self, mapper: NodeMapper, position_scale: float = 1.0, auto_layout: str = ""):
        self.mapper = mapper
        self.parser = MettaParser(mapper)
        self.engine = LayoutEngine()
        self.position_scale = position_scale
        self.auto_layout = auto_layout
        self.text = ""

    def parse(self, text: str) -> ParseResult:
        """
        Parse ``text`` and load the result into the layout engine.

        An unexpected fault in the parser is reported as a single line-1
        error and leaves the engine empty.
        """
        self.text = text
        if not text.strip():
            self.engine.set_data([], [])
            return ParseResult()

        try:
            result = self.parser.parse(text)
        except Exception as e:
            print(f"[Server] Parse failed: {e!r}")
            self.engine.set_data([], [])
            return ParseResult(errors=[ParseError(
                line=1,
                column=1,
                message="Failed to parse Metta text",
                severity=Severity.ERROR,
            )])

        for node in result.nodes:
            node.position = Point(
                x=node.position.x * self.position_scale,
                y=node.position.y * self.position_scale,
            )

        self.engine.set_data(result.nodes, result.edges)
        if self.auto_layout and result.nodes:
            self.engine.apply_layout(self.auto_layout)
            self.engine.settle()

        return result

    def graph_payload(self) -> Dict[str, Any]:
        """Current engine graph as JSON-ready data."""
        return {
            "nodes": [node.model_dump(mode="json") for node in self.engine.nodes],
            "edges": [edge.model_dump(mode="json") for edge in self.engine.edges],
            "layout_state": self.engine.get_layout_state().model_dump(mode="json"),
        }


# ============================================================================
# WebSocket Connection Manager
# ============================================================================

class ConnectionManager:
    """Manages WebSocket connections for broadcasting frames."""

    def __init__(self):
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)
        print(f"[WS] Client connected. Total: {len(self.active_connections)}")

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
        print(f"[WS] Client disconnected. Total: {len(self.active_connections)}")

    async def broadcast(self, message: Dict[str, Any]):
        """Send a message to all connected clients."""
        disconnected = []
        for connection in self.active_connections:
            try:
                await connection.send_json(message)
            except (WebSocketDisconnect, RuntimeError):
                disconnected.append(connection)
        for connection in disconnected:
            self.disconnect(connection)


manager = ConnectionManager()
session = GraphSession(_load_mapper(), position_scale=POSITION_SCALE, auto_layout=AUTO_LAYOUT)
animation_task: Optional[asyncio.Task] = None


async def run_layout_animation(frame_interval: float) -> None:
    """Tick the engine until its animation completes, broadcasting every frame."""
    engine = session.engine
    await manager.broadcast({
        "type": "layout_started",
        "targets": {node_id: p.model_dump() for node_id, p in engine.target_positions.items()},
        "layout_state": engine.get_layout_state().model_dump(mode="json"),
    })

    while True:
        running = engine.tick()
        await manager.broadcast({
            "type": "layout_frame",
            "positions": {node.id: node.position.model_dump() for node in engine.nodes},
            "layout_state": engine.get_layout_state().model_dump(mode="json"),
        })
        if not running:
            break
        await asyncio.sleep(frame_interval)

    await manager.broadcast({
        "type": "layout_complete",
        "layout_state": engine.get_layout_state().model_dump(mode="json"),
    })


async def cancel_animation_task() -> None:
    """Cancel the running animation task and wait for it to finish."""
    global animation_task
    task, animation_task = animation_task, None
    if task is None:
        return

    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception as e:
        print(f"[Server] Layout animation failed: {e!r}")


# ============================================================================
# App Lifecycle
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """App startup and shutdown."""
    print("[Server] mettagraph layout server starting...")
    yield
    await cancel_animation_task()
    print("[Server] mettagraph layout server shutting down...")


app = FastAPI(title="mettagraph Layout Server", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Routes
# ============================================================================

@app.get("/")
async def root():
    return HTMLResponse("<h1>mettagraph Layout Server Running</h1><p>POST text to /api/parse.</p>")


@app.get("/api/config")
async def get_config():
    """Effective configuration."""
    return {
        "layout_defaults": LayoutOptions().model_dump(),
        "layout_algorithms": [a.value for a in LayoutAlgorithm],
        "common_predicates": list(session.mapper.common_predicates),
        "position_scale": session.position_scale,
        "auto_layout": session.auto_layout,
        "frame_rate": FRAME_RATE,
    }


@app.post("/api/parse")
async def parse_text(request: TextRequest):
    """Parse a document and load it into the layout engine."""
    await cancel_animation_task()
    result = session.parse(request.text)
    payload = session.graph_payload()
    payload.update({
        "errors": [e.model_dump(mode="json") for e in result.errors],
        "metadata": result.metadata.model_dump(mode="json"),
        "hypergraphs": [h.model_dump(mode="json") for h in result.hypergraphs],
        "legend": build_legend(session.engine.nodes, session.engine.edges, session.mapper).model_dump(),
    })
    return payload


@app.post("/api/validate")
async def validate_text(request: TextRequest):
    """Syntax validation only."""
    return session.parser.validate_syntax(request.text).model_dump(mode="json")


@app.post("/api/layout")
async def apply_layout(request: LayoutRequest):
    """Apply a layout and return the settled positions."""
    await cancel_animation_task()
    try:
        session.engine.apply_layout(request.algorithm, request.options)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    session.engine.settle()
    return session.graph_payload()


@app.post("/api/layout/stop")
async def stop_layout():
    await cancel_animation_task()
    session.engine.stop_layout()
    return session.engine.get_layout_state().model_dump(mode="json")


@app.get("/api/layout/state")
async def get_layout_state():
    return session.engine.get_layout_state().model_dump(mode="json")


@app.post("/api/nodes/{node_id}/drag")
async def drag_node(node_id: str, position: Point):
    """Move one node."""
    if not session.engine.handle_node_drag(node_id, position):
        raise HTTPException(status_code=404, detail=f"Node not found: {node_id}")
    node = session.engine.get_node(node_id)
    return node.model_dump(mode="json")


@app.post("/api/hit-test")
async def hit_test(request: HitTestRequest):
    """Node under a screen position, if any, with its own screen position."""
    node = session.engine.get_node_at_position(request.position, request.transform)
    if node is None:
        return {"node": None, "screen_position": None}
    return {
        "node": node.model_dump(mode="json"),
        "screen_position": request.transform.world_to_screen(node.position).model_dump(),
    }


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Stream animation frames for layouts requested over the socket."""
    global animation_task
    await manager.connect(websocket)

    try:
        await websocket.send_json({
            "type": "connected",
            "message": "Connected to mettagraph layout server",
            **session.graph_payload(),
        })

        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                await websocket.send_json({"type": "error", "message": "Message is not valid JSON"})
                continue
            if not isinstance(message, dict):
                await websocket.send_json({"type": "error", "message": "Message must be a JSON object"})
                continue

            action = message.get("action")

            if action == "layout":
                await cancel_animation_task()
                try:
                    session.engine.apply_layout(
                        message.get("algorithm", LayoutAlgorithm.FORCE_DIRECTED.value),
                        message.get("options") or {},
                    )
                except (ValueError, ValidationError) as e:
                    await websocket.send_json({"type": "error", "message": str(e)})
                    continue
                animation_task = asyncio.create_task(run_layout_animation(1.0 / FRAME_RATE))
            elif action == "stop":
                await cancel_animation_task()
                session.engine.stop_layout()
                await manager.broadcast({
                    "type": "layout_stopped",
                    "layout_state": session.engine.get_layout_state().model_dump(mode="json"),
                })
            else:
                await websocket.send_json({"type": "error", "message": f"Unknown action: {action!r}"})

    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(websocket)


# ============================================================================
# Main
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
