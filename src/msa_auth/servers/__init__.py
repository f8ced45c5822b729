"""HTTP endpoints hosted by the client (loopback redirect receiver)."""
