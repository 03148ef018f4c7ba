"""Outbound hand-off between the chat side and the relay."""
