"""Relay engine: classification, connection lifecycle, bridge facade."""
