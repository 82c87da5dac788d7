"""Streaming invocation client and conversation history tools for AgentCore agents.

The operator command surface is implemented with Typer and Rich, while the
library modules stay free of terminal concerns.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
