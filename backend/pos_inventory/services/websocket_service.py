"""
WebSocket Real-time Service
Live stock balances and low stock alerts for the inventory screens
"""
import json
import logging
from dataclasses import dataclass, asdict
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

from pos_inventory.db.base import utcnow

logger = logging.getLogger(__name__)

INVENTORY_CHANNEL = "inventory"
DEFAULT_VENUE_ID = 1


class EventType(str, Enum):
    """WebSocket event types"""
    # Connection events
    CONNECTED = "connected"

    # Stock events
    STOCK_UPDATED = "stock_updated"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    STOCK_RECEIVED = "stock_received"
    USAGE_RECORDED = "usage_recorded"


@dataclass
class WebSocketMessage:
    """Standard WebSocket message format"""
    event: str
    data: Dict[str, Any]
    timestamp: Optional[str] = None
    venue_id: Optional[int] = None

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = utcnow().isoformat()

    def to_json(self) -> str:
        return json.dumps(jsonable_encoder(asdict(self)))


class ConnectionManager:
    """
    Manages WebSocket connections and message broadcasting.
    Supports channels for targeted message delivery.
    """

    def __init__(self):
        # Active connections by venue
        self.venue_connections: Dict[int, Set[WebSocket]] = {}

        # Connections by channel key "{venue}:{channel}"
        self.channel_connections: Dict[str, Set[WebSocket]] = {}

        # Connection metadata
        self.connection_info: Dict[WebSocket, Dict] = {}

        self.stats = {
            "total_connections": 0,
            "messages_sent": 0,
            "messages_broadcast": 0,
        }

    async def connect(
        self,
        websocket: WebSocket,
        venue_id: int,
        channels: Optional[List[str]] = None,
        user_id: Optional[int] = None,
    ):
        """Accept a new WebSocket connection"""
        await websocket.accept()

        self.venue_connections.setdefault(venue_id, set()).add(websocket)

        channels = channels or [INVENTORY_CHANNEL]
        for channel in channels:
            self.channel_connections.setdefault(f"{venue_id}:{channel}", set()).add(websocket)

        self.connection_info[websocket] = {
            "venue_id": venue_id,
            "user_id": user_id,
            "channels": channels,
            "connected_at": utcnow().isoformat(),
        }
        self.stats["total_connections"] += 1

        await self.send_personal(websocket, WebSocketMessage(
            event=EventType.CONNECTED,
            data={
                "message": "Connected to inventory updates",
                "channels": channels,
                "venue_id": venue_id,
            },
            venue_id=venue_id,
        ))
        logger.info(f"WebSocket connected: venue={venue_id}, channels={channels}")

    def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection"""
        info = self.connection_info.pop(websocket, {})
        venue_id = info.get("venue_id")

        if venue_id in self.venue_connections:
            self.venue_connections[venue_id].discard(websocket)
            if not self.venue_connections[venue_id]:
                del self.venue_connections[venue_id]

        for channel in info.get("channels", []):
            channel_key = f"{venue_id}:{channel}"
            if channel_key in self.channel_connections:
                self.channel_connections[channel_key].discard(websocket)
                if not self.channel_connections[channel_key]:
                    del self.channel_connections[channel_key]

        logger.info(f"WebSocket disconnected: venue={venue_id}")

    async def send_personal(self, websocket: WebSocket, message: WebSocketMessage):
        """Send message to a specific connection"""
        try:
            await websocket.send_text(message.to_json())
            self.stats["messages_sent"] += 1
        except Exception as e:
            logger.error(f"Failed to send message: {e}")
            self.disconnect(websocket)

    async def broadcast_channel(self, venue_id: int, channel: str, message: WebSocketMessage):
        """Broadcast message to a specific channel"""
        message.venue_id = venue_id
        connections = self.channel_connections.get(f"{venue_id}:{channel}", set()).copy()
        if not connections:
            return

        payload = message.to_json()
        disconnected = []
        for websocket in connections:
            try:
                await websocket.send_text(payload)
            except Exception:
                disconnected.append(websocket)

        for ws in disconnected:
            self.disconnect(ws)

        self.stats["messages_broadcast"] += 1

    def get_stats(self) -> Dict:
        """Get connection statistics"""
        return {
            **self.stats,
            "active_venues": len(self.venue_connections),
            "active_connections": sum(len(c) for c in self.venue_connections.values()),
            "active_channels": len(self.channel_connections),
        }


# Global connection manager instance
manager = ConnectionManager()


# =============================================================================
# EVENT EMITTERS
# =============================================================================

def stock_snapshot(item) -> Dict[str, Any]:
    """Plain values of an item taken before the session closes."""
    return {
        "item_id": item.id,
        "name": item.name,
        "unit": item.unit,
        "current_stock": item.current_stock,
        "par_level": item.par_level,
        "low_stock_alert_enabled": item.low_stock_alert_enabled,
    }


async def emit_stock_alert(snapshot: Dict[str, Any], venue_id: int = DEFAULT_VENUE_ID):
    """Emit low/out of stock when the balance is at or below par"""
    current = Decimal(str(snapshot.get("current_stock") or 0))
    par = Decimal(str(snapshot.get("par_level") or 0))
    if not snapshot.get("low_stock_alert_enabled", True):
        return
    if current <= 0:
        event = EventType.OUT_OF_STOCK
    elif par > 0 and current <= par:
        event = EventType.LOW_STOCK
    else:
        return

    await manager.broadcast_channel(venue_id, INVENTORY_CHANNEL, WebSocketMessage(
        event=event,
        data={**snapshot, "priority": "high" if event == EventType.OUT_OF_STOCK else "normal"},
    ))


async def emit_stock_updated(
    snapshots: List[Dict[str, Any]],
    reason: str = "",
    venue_id: int = DEFAULT_VENUE_ID,
):
    """Emit new balances after a committed stock mutation"""
    for snapshot in snapshots:
        await manager.broadcast_channel(venue_id, INVENTORY_CHANNEL, WebSocketMessage(
            event=EventType.STOCK_UPDATED,
            data={**snapshot, "reason": reason},
        ))
        await emit_stock_alert(snapshot, venue_id)


async def emit_stock_received(
    snapshot: Dict[str, Any],
    supplier_name: str,
    quantity: Decimal,
    venue_id: int = DEFAULT_VENUE_ID,
):
    """Emit a supplier delivery"""
    await manager.broadcast_channel(venue_id, INVENTORY_CHANNEL, WebSocketMessage(
        event=EventType.STOCK_RECEIVED,
        data={**snapshot, "supplier": supplier_name, "quantity": quantity},
    ))


async def emit_usage_recorded(order_id: int, summary: Dict[str, Any], venue_id: int = DEFAULT_VENUE_ID):
    """Emit the outcome of an order's recipe usage deduction"""
    await manager.broadcast_channel(venue_id, INVENTORY_CHANNEL, WebSocketMessage(
        event=EventType.USAGE_RECORDED,
        data={
            "order_id": order_id,
            "items": summary.get("items", []),
            "shortages": summary.get("shortages", []),
        },
    ))
