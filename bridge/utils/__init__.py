"""Shared helpers: time, HTTP envelopes, event bus and Socket.IO emitters."""
