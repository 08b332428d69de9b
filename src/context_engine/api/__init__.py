"""HTTP API for Context Engine."""
