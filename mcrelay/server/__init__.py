"""Game server HTTP API client."""
