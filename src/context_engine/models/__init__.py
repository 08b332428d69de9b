"""Data models for Context Engine."""
