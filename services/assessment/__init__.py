# services/assessment/__init__.py
"""assessment attempt engine: explicit exports only; no runtime side effects."""

__all__ = ["cache", "cli", "client", "codec", "navigation", "renderer", "review", "session", "timer"]
