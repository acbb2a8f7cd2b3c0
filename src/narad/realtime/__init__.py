"""Per-connection realtime channel (heartbeat, echo, event publish)."""

from narad.realtime.channel import RealtimeChannel

__all__ = ["RealtimeChannel"]
