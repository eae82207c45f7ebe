"""
Shared test fixtures and configuration.
"""

import logging
import textwrap
from pathlib import Path

import pytest

from svcctl.core import context
from svcctl.core.engine.statusbus import StatusBus
from svcctl.core.models.path import ObjectPath

NODE = "node1"


@pytest.fixture(autouse=True)
def node_name():
    """Pin the node name so ownership checks don't depend on the host."""
    context.set_node_name(NODE)
    yield NODE
    context.set_node_name(None)


@pytest.fixture(autouse=True)
def restore_root_logger():
    """The CLI reconfigures the root logger; put it back after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for h in root.handlers:
        if h not in handlers:
            h.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.raiseExceptions = True


@pytest.fixture
def var_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for lock files and driver state."""
    d = tmp_path / "var"
    d.mkdir()
    return d


@pytest.fixture
def bus():
    """A started status bus, stopped after the test."""
    b = StatusBus()
    b.start()
    yield b
    b.stop()


@pytest.fixture
def svc_path() -> ObjectPath:
    return ObjectPath.parse("svc1")


@pytest.fixture
def make_cluster(tmp_path: Path, var_dir: Path):
    """Return a function writing cluster.yml with *body* after the cluster section."""

    def write(body: str) -> Path:
        header = textwrap.dedent(f"""\
            cluster:
              name: test-cluster
              node: {NODE}
              var_dir: {var_dir}
              lock_timeout: 2
        """)
        config = tmp_path / "cluster.yml"
        config.write_text(header + textwrap.dedent(body))
        return config

    return write
