"""
Dashboard endpoints.

GET /stats returns one snapshot. The /ws WebSocket streams a fresh snapshot
every time the invoice data changes.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from kirana.api.deps import Invoices, new_dashboard
from kirana.services.dashboard import DashboardAggregator, DashboardState

logger = logging.getLogger(__name__)

router = APIRouter()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/stats", response_model=DashboardState)
async def get_dashboard_stats(invoices: Invoices):
    """Today's sales, pending credit and today's recent invoices."""
    return await new_dashboard(invoices).load_once()


async def _stream_snapshots(websocket: WebSocket, dashboard: DashboardAggregator) -> None:
    async for snapshot in dashboard.state.watch():
        await websocket.send_json(
            {
                "type": "dashboard.snapshot",
                "data": snapshot.model_dump(mode="json"),
                "timestamp": _now(),
            }
        )


@router.websocket("/ws")
async def dashboard_websocket(websocket: WebSocket, invoices: Invoices):
    """
    Live dashboard stream.

    Message Protocol:
    - Client -> Server:
        - {"type": "ping"} - Heartbeat ping
        - {"type": "refresh"} - Reload, re-reading today's sales
    - Server -> Client:
        - {"type": "dashboard.snapshot", "data": {"status": "loading" | "ready" | "failed", ...}}
        - {"type": "pong", "timestamp": "..."}
        - {"type": "error", "message": "..."}
    """
    await websocket.accept()

    dashboard = new_dashboard(invoices)
    sender = asyncio.create_task(_stream_snapshots(websocket, dashboard))
    dashboard.start()

    try:
        while True:
            try:
                data = await websocket.receive_json()
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON format"})
                continue

            message_type = data.get("type")

            if message_type == "ping":
                await websocket.send_json({"type": "pong", "timestamp": _now()})
            elif message_type == "refresh":
                dashboard.refresh()
            else:
                await websocket.send_json(
                    {"type": "error", "message": f"Unknown message type: {message_type}"}
                )

    except WebSocketDisconnect:
        logger.info("Dashboard WebSocket disconnected")
    finally:
        sender.cancel()
        await dashboard.close()
        try:
            await sender
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.warning(f"Dashboard stream stopped with error: {e}")
