"""
API routes for Context Engine.
"""

from context_engine.api.routes import projects, sessions

__all__ = ["projects", "sessions"]
