"""WebSocket channel between a participant's browser and the server."""

import json
import logging
from typing import Any, Optional

from fastapi import WebSocket, WebSocketDisconnect

from .identity import validate_name
from .registry import ParticipantRegistry

logger = logging.getLogger(__name__)


class ParticipantConnection:
    """Registry connection handle backed by a WebSocket."""

    def __init__(self, ws: WebSocket):
        self.ws = ws

    async def send_event(self, event: str, data: Any) -> None:
        await self.ws.send_json({"type": event, "data": data})


async def _send_error(ws: WebSocket, message: str):
    await ws.send_json({"type": "error", "data": {"message": message}})


async def participant_channel(ws: WebSocket, registry: ParticipantRegistry):
    """WebSocket handler at /ws/participant.

    Protocol messages (client → server):
      {"action": "register", "name": "Jane Doe"}
      {"action": "ping"}

    Server → client messages have {"type": ..., "data": ...} shape:
      {"type": "uuid", "data": "<participant id>"}
      {"type": "<stage>", "data": "<video id>"}   (relayed stage transitions)
      {"type": "pong", "data": null}
      {"type": "error", "data": {"message": ...}}
    """
    await ws.accept()

    connection = ParticipantConnection(ws)
    pid: Optional[str] = None

    try:
        while True:
            raw = await ws.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await _send_error(ws, "Messages must be JSON")
                continue
            if not isinstance(msg, dict):
                await _send_error(ws, "Messages must be JSON objects")
                continue

            action = msg.get("action", "")

            if action == "register":
                name = msg.get("name")
                problem = validate_name(name) if isinstance(name, str) else "Please enter your full name to continue"
                if problem:
                    await _send_error(ws, problem)
                    continue
                if pid is not None:
                    registry.release(pid, connection)
                pid = registry.register(name, connection)
                await connection.send_event("uuid", pid)

            elif action == "ping":
                await connection.send_event("pong", None)

            else:
                logger.info(f"WS unknown action={action!r}")
                await _send_error(ws, f"Unknown action: {action}")

    except WebSocketDisconnect:
        logger.info(f"WS [{(pid or 'anonymous')[:8]}] client disconnected")
    except Exception as e:
        logger.error(f"WS [{(pid or 'anonymous')[:8]}] error: {e}")
    finally:
        if pid is not None:
            registry.release(pid, connection)
