"""Paneguard - action authorization for multi-agent tmux sessions."""

__version__ = "0.1.0"

__all__ = ["__version__"]
