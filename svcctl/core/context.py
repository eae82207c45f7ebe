"""
Node context — the single source of truth for "which node are we."

The node name is set ONCE at startup by whichever entry point launches
the process:

    - CLI:    the action and status use cases, once cluster.yml is loaded
              → context.set_node_name(config.node)
    - Tests:  conftest → context.set_node_name("node1")

get_node_name() falls back to the hostname when unset, so drivers that
record ownership (fs.flag) always have a name to write.
"""

from __future__ import annotations

import socket
from typing import Optional


_node_name: Optional[str] = None


def set_node_name(name: Optional[str]) -> None:
    """Register the node name for the current process. Empty resets."""
    global _node_name
    _node_name = name or None


def get_node_name() -> str:
    """Return the registered node name, or the hostname."""
    return _node_name or socket.gethostname()
