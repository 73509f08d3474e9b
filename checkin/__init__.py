"""Check-in dispatch, inbound replies and draft review."""
