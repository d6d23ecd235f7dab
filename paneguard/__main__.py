"""
Paneguard - action authorization for multi-agent tmux sessions

Decides whether agent-initiated commands and file operations are allowed,
denied, or need a human decision, and sanitizes text before it is relayed
into another agent's tmux pane.

Quick Start:
    pip install -e .
    paneguard check-path queue/tasks/worker1.yaml --write
    paneguard send multiagent:0.1 "task complete"
"""

from paneguard.cli.cli import main

if __name__ == "__main__":
    main()
