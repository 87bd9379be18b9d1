"""HTTP and WebSocket transport."""
