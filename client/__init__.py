"""Hub signalling client: connection-gated request/response correlation over one WebSocket."""
