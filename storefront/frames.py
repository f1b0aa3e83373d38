"""
storefront/frames.py

Typed WebSocket frames for the order-updates channel.

Every frame on the wire is a JSON object carrying a ``type`` discriminator and
an ISO-8601 ``timestamp``. Each known ``type`` maps to one frozen dataclass;
anything else, including JSON with no string ``type``, decodes to :class:`Event`
so collaborators can push new kinds of events without a client upgrade.
"""

import json
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Optional, Type


class FrameDecodeError(ValueError):
    """Raised when a raw frame is not UTF-8 text or not valid JSON."""


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ==============================================================================
# Frame variants
# ==============================================================================

@dataclass(frozen=True)
class Frame:
    type: ClassVar[str] = ""

    def payload(self) -> Dict[str, Any]:
        """Return the frame fields without the ``type`` tag."""
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name != "timestamp"}

    def to_dict(self) -> Dict[str, Any]:
        data = {"type": self.type, **self.payload()}
        timestamp = getattr(self, "timestamp", None)
        if timestamp is not None:
            data["timestamp"] = timestamp
        return data


@dataclass(frozen=True)
class Connection(Frame):
    type: ClassVar[str] = "connection"
    message: str = ""
    timestamp: Optional[str] = None


@dataclass(frozen=True)
class Echo(Frame):
    type: ClassVar[str] = "echo"
    data: Any = None
    timestamp: Optional[str] = None


@dataclass(frozen=True)
class Error(Frame):
    type: ClassVar[str] = "error"
    message: str = ""
    timestamp: Optional[str] = None


@dataclass(frozen=True)
class Ping(Frame):
    type: ClassVar[str] = "ping"
    timestamp: Optional[str] = None


@dataclass(frozen=True)
class OrderCreated(Frame):
    type: ClassVar[str] = "NEW_ORDER"
    order: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[str] = None


@dataclass(frozen=True)
class OrderStatusChanged(Frame):
    type: ClassVar[str] = "ORDER_STATUS_UPDATE"
    orderId: str = ""
    status: str = ""
    timestamp: Optional[str] = None


@dataclass(frozen=True)
class OrderUpdated(Frame):
    type: ClassVar[str] = "ORDER_UPDATED"
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[str] = None


@dataclass(frozen=True)
class Event(Frame):
    """Any frame whose ``type`` is not one of the variants above, or has none."""

    event_type: str = ""
    attributes: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[str] = None

    @property
    def type(self):
        return self.event_type

    def payload(self):
        return dict(self.attributes)


FRAME_TYPES: Dict[str, Type[Frame]] = {
    cls.type: cls
    for cls in (Connection, Echo, Error, Ping, OrderCreated, OrderStatusChanged, OrderUpdated)
}


# ==============================================================================
# Codec
# ==============================================================================

def encode_frame(frame, timestamp: Optional[str] = None) -> str:
    """
    Serialize a frame (or a plain ``{"type": ...}`` dict) to JSON, merging in a
    server timestamp. An explicit ``timestamp`` argument wins over any value
    already carried by the frame.
    """
    data = frame.to_dict() if isinstance(frame, Frame) else dict(frame)
    data["timestamp"] = timestamp or data.get("timestamp") or utc_timestamp()
    return json.dumps(data, default=str)


def decode_frame(raw) -> Frame:
    """Parse raw text (or an already-decoded dict) into its frame variant."""
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FrameDecodeError(f"Frame is not valid UTF-8: {exc}") from exc

    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise FrameDecodeError(f"Frame is not valid JSON: {exc}") from exc
    else:
        data = raw

    if not isinstance(data, dict):
        return Event(event_type="", attributes={"data": data})
    if not isinstance(data.get("type"), str):
        data = dict(data)
        timestamp = data.pop("timestamp", None)
        return Event(event_type="", attributes=data, timestamp=timestamp)

    data = dict(data)
    frame_type = data.pop("type")
    timestamp = data.pop("timestamp", None)
    frame_cls = FRAME_TYPES.get(frame_type)

    if frame_cls is None:
        return Event(event_type=frame_type, attributes=data, timestamp=timestamp)

    # Extra fields pushed by collaborators are dropped from typed variants.
    known = {f.name for f in fields(frame_cls)}
    data = {k: v for k, v in data.items() if k in known}
    return frame_cls(timestamp=timestamp, **data)
