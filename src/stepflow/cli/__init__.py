"""
stepflow CLI - Command-line interface for the workflow engine.

Commands:
- validate: Check a spec without running it
- plan: Print execution order
- run: Execute a spec against an adapter
- suggest: Offline label -> field helper
"""

from .main import cli

__all__ = ["cli"]
