# tests/conftest.py
"""Shared pytest fixtures for IED server tests.

Foundation components (model, server, diagnostics) are cheap to build, so
tests use real instances wherever possible and mock only at the edges.
"""

import io
import threading
from pathlib import Path
from types import SimpleNamespace

import pytest
import yaml

from iedbridge.diagnostics import DiagnosticChannel
from iedbridge.model.loader import build_model, default_model_document
from iedbridge.model.nodes import (
    AttributeType,
    FunctionalConstraint,
    IedModel,
    ModelNode,
    NodeKind,
    TypedValue,
)
from iedbridge.server.ied_server import IedServer

FIXED_TIME_MS = 1_700_000_000_000


# ----------------------------------------------------------------
# Model builders
# ----------------------------------------------------------------
def add_attribute(parent, name, fc=FunctionalConstraint.ST, attribute_type=None):
    """Append a data attribute with a sensible initial value."""
    attribute_type = attribute_type or AttributeType.INT32
    value = None
    if attribute_type is AttributeType.INT32:
        value = TypedValue.int32(0)
    elif attribute_type is AttributeType.BOOLEAN:
        value = TypedValue.boolean(False)
    elif attribute_type is AttributeType.UTC_TIME:
        value = TypedValue.utc_time(0)
    return parent.add_child(
        ModelNode(
            name,
            NodeKind.DATA_ATTRIBUTE,
            fc=fc,
            attribute_type=attribute_type,
            value=value,
        )
    )


def add_controllable(ln, name, with_timestamp=True):
    """Data object with stVal, optional t and an Oper structure."""
    do = ln.add_child(ModelNode(name, NodeKind.DATA_OBJECT))
    add_attribute(do, "stVal")
    if with_timestamp:
        add_attribute(do, "t", attribute_type=AttributeType.UTC_TIME)
    oper = add_attribute(
        do, "Oper", fc=FunctionalConstraint.CO, attribute_type=AttributeType.CONSTRUCTED
    )
    add_attribute(oper, "ctlVal", fc=FunctionalConstraint.CO)
    return do


def add_status_only(ln, name):
    do = ln.add_child(ModelNode(name, NodeKind.DATA_OBJECT))
    add_attribute(do, "stVal")
    add_attribute(do, "t", attribute_type=AttributeType.UTC_TIME)
    return do


# ----------------------------------------------------------------
# Model fixtures
# ----------------------------------------------------------------
@pytest.fixture
def demo_model() -> IedModel:
    """The default demo model (5 controllable points)."""
    return build_model(default_model_document())


@pytest.fixture
def small_model() -> IedModel:
    """One LD, one LN, two controllable points and one status-only point."""
    model = IedModel("")
    ld = model.add_logical_device("LD0")
    ln = ld.add_child(ModelNode("GGIO1", NodeKind.LOGICAL_NODE))
    add_controllable(ln, "SPCSO1")
    add_controllable(ln, "SPCSO2", with_timestamp=False)
    add_status_only(ln, "Ind1")
    return model


# ----------------------------------------------------------------
# Server and diagnostics fixtures
# ----------------------------------------------------------------
@pytest.fixture
def server(demo_model) -> IedServer:
    return IedServer(demo_model, host="127.0.0.1", port=0)


@pytest.fixture
def diag_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def diagnostics(diag_stream) -> DiagnosticChannel:
    return DiagnosticChannel(diag_stream)


@pytest.fixture
def diag_lines(diag_stream):
    """Callable returning the diagnostic lines written so far."""

    def lines():
        return diag_stream.getvalue().splitlines()

    return lines


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_TIME_MS


@pytest.fixture
def shutdown_event() -> threading.Event:
    return threading.Event()


# ----------------------------------------------------------------
# Configuration fixtures
# ----------------------------------------------------------------
@pytest.fixture
def temp_config_dir(tmp_path) -> Path:
    """Empty configuration directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def write_yaml():
    """Write a dict as YAML and return the path."""

    def _write(path: Path, data: dict) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(data, f)
        return path

    return _write


@pytest.fixture
def builders():
    """Model building helpers for tests that shape their own trees."""
    return SimpleNamespace(
        add_attribute=add_attribute,
        add_controllable=add_controllable,
        add_status_only=add_status_only,
    )
