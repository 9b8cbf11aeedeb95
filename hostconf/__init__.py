"""hostconf: idempotent configuration patching for single Linux hosts."""

__version__ = "1.0.0"
