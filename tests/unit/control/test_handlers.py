# tests/unit/control/test_handlers.py
"""Tests for ControlProtocolAdapter.

The adapter's handlers are the only code that changes status values in
response to control requests, so the no-mutation guarantees for test
requests and select steps are tested against every candidate value type.
"""

import pytest

from iedbridge.control.binding import ControlBinding
from iedbridge.control.handlers import ControlProtocolAdapter
from iedbridge.control.handlers import logger as handlers_logger
from iedbridge.model.nodes import TypedValue, ValueType
from iedbridge.security.logging_system import EventCategory
from iedbridge.server.control import (
    CheckHandlerResult,
    ControlAction,
    ControlHandlerResult,
)
from iedbridge.server.ied_server import IedServer

CANDIDATE_VALUES = [
    TypedValue.boolean(True),
    TypedValue.boolean(False),
    TypedValue.int32(2),
    TypedValue.int32(-(2**31)),
    TypedValue.floating(3.14),
    TypedValue.utc_time(0),
    TypedValue(ValueType.STRING, "not a valid control value"),
]


@pytest.fixture
def server(small_model):
    return IedServer(small_model, port=0)


@pytest.fixture
def adapter(server, diagnostics, fixed_clock):
    return ControlProtocolAdapter(server, diagnostics, clock=fixed_clock)


@pytest.fixture
def binding(small_model):
    do = small_model.get_node_by_reference("LD0/GGIO1.SPCSO1")
    return ControlBinding(
        control_point=do,
        status_attribute=do.get_child("stVal"),
        timestamp_attribute=do.get_child("t"),
        path="LD0/GGIO1.SPCSO1",
    )


def operate_action(select=False):
    return ControlAction(reference="LD0/GGIO1.SPCSO1", select=select, ctl_num=3)


class TestPerformCheck:
    """Test the check phase."""

    @pytest.mark.parametrize("test", [True, False])
    @pytest.mark.parametrize("interlock_check", [True, False])
    def test_always_accepted(self, adapter, test, interlock_check):
        result = adapter.perform_check(
            operate_action(), TypedValue.int32(1), test, interlock_check
        )
        assert result is CheckHandlerResult.ACCEPTED


class TestControl:
    """Test the operate phase."""

    def test_operate_updates_status_and_timestamp(
        self, adapter, binding, diag_lines, fixed_clock
    ):
        result = adapter.control(binding, operate_action(), TypedValue.int32(2), False)

        assert result is ControlHandlerResult.OK
        assert binding.status_attribute.value == TypedValue.int32(2)
        assert binding.timestamp_attribute.value == TypedValue.utc_time(fixed_clock())
        assert diag_lines() == ["CONTROL_UPDATE LD0/GGIO1.SPCSO1"]

    @pytest.mark.parametrize("value", CANDIDATE_VALUES, ids=str)
    def test_test_request_never_mutates(self, adapter, binding, diag_lines, value):
        """Test that test=True leaves the model untouched for any value.

        WHY: Test mode is a dry run by definition.
        """
        before = (binding.status_attribute.value, binding.timestamp_attribute.value)

        for select in (False, True):
            result = adapter.control(binding, operate_action(select), value, True)
            assert result is ControlHandlerResult.OK

        after = (binding.status_attribute.value, binding.timestamp_attribute.value)
        assert after == before
        assert diag_lines() == []

    @pytest.mark.parametrize("value", CANDIDATE_VALUES, ids=str)
    def test_select_never_mutates_and_returns_ok(
        self, adapter, binding, diag_lines, value
    ):
        before = binding.status_attribute.value

        result = adapter.control(binding, operate_action(select=True), value, False)

        assert result is ControlHandlerResult.OK
        assert binding.status_attribute.value == before
        assert diag_lines() == []

    def test_missing_binding_fails(self, adapter):
        result = adapter.control(None, operate_action(), TypedValue.int32(1), False)
        assert result is ControlHandlerResult.FAILED

    def test_no_timestamp_attribute(self, adapter, binding, diag_lines):
        binding = ControlBinding(
            control_point=binding.control_point,
            status_attribute=binding.status_attribute,
            timestamp_attribute=None,
            path=binding.path,
        )

        result = adapter.control(binding, operate_action(), TypedValue.int32(7), False)

        assert result is ControlHandlerResult.OK
        assert binding.status_attribute.value == TypedValue.int32(7)
        assert diag_lines() == ["CONTROL_UPDATE LD0/GGIO1.SPCSO1"]

    def test_operate_recorded_in_audit_trail(self, adapter, binding):
        handlers_logger.clear_audit_trail()

        adapter.control(binding, operate_action(), TypedValue.boolean(True), False)

        trail = handlers_logger.get_audit_trail(category=EventCategory.AUDIT)
        assert len(trail) == 1
        assert trail[0].reference == "LD0/GGIO1.SPCSO1"
        assert trail[0].data["action"] == "operate"
        assert trail[0].data["value"] == "true"


class TestBind:
    """Test handler closures."""

    def test_bound_handler_carries_its_binding(self, adapter, binding):
        """Test that each installed handler closes over its own binding.

        WHY: The server calls handlers with (action, value, test) only.
        """
        handler = adapter.bind(binding)

        result = handler(operate_action(), TypedValue.int32(9), False)

        assert result is ControlHandlerResult.OK
        assert binding.status_attribute.value == TypedValue.int32(9)
