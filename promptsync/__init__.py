"""
promptsync: Incremental Prompt Segment Resolution and Synchronization

Keeps a comma/newline-delimited prompt and its structured tag list in step,
resolving each segment through a session cache, a persistent dictionary and an
external translation/classification service.
"""

__version__ = "0.1.0"

__all__ = ["PromptSyncEngine"]

def __getattr__(name):
    """Lazy import to avoid eager loading of the HTTP adapters."""
    if name == "PromptSyncEngine":
        from .engine import PromptSyncEngine
        return PromptSyncEngine
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
