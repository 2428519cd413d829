#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Tests for step invocation and outcome mapping.

Author: stepserve contributors
"""

import asyncio

from conftest import FakeFunction

from stepserve.core.data.errors import SERIALIZED_KEY, OutgoingOpError
from stepserve.protocols.gateway import index_functions
from stepserve.protocols.invoker import StepInvoker
from stepserve.protocols.models import StepStatus
from stepserve.protocols.runtime import StepFunction

APP_NAME = "Test App"


def _run(fn, payload, function_id=None):
    invoker = StepInvoker(index_functions(APP_NAME, [fn]))
    return asyncio.run(invoker.run_step(function_id or fn.id(APP_NAME), "step", payload))


def test_completed_step_returns_body():
    fn = FakeFunction("alpha", result=(False, {"ok": True}))

    result = _run(fn, {"event": {"name": "test/alpha"}, "steps": {"a": 1}})

    assert result.status is StepStatus.COMPLETED
    assert result.http_status == 200
    assert result.body == {"ok": True}
    assert fn.calls == [({"name": "test/alpha"}, {"a": 1})]


def test_missing_steps_default_to_empty_mapping():
    fn = FakeFunction("alpha")

    _run(fn, {"event": {}})

    assert fn.calls == [({}, {})]


def test_intermediate_operation_is_pending():
    fn = FakeFunction("alpha", result=(True, {"op": "wait"}))

    result = _run(fn, b'{"event":{}}')

    assert result.status is StepStatus.PENDING_OPERATION
    assert result.http_status == 206
    assert result.body == {"op": "wait"}


def test_async_handlers_are_awaited():
    async def handler(event, steps):
        await asyncio.sleep(0)
        return {"greeting": "hello " + event["data"]["who"]}

    fn = StepFunction("hello", handler, event="demo/hello")

    result = _run(fn, {"event": {"data": {"who": "world"}}})

    assert result.body == {"greeting": "hello world"}


def test_unknown_function_is_a_fault():
    result = _run(FakeFunction("alpha"), {"event": {}}, function_id="test-app-missing")

    assert result.is_fault
    assert result.body == 'FunctionNotFoundError: Could not find function with ID "test-app-missing"'
    assert result.error["name"] == "FunctionNotFoundError"


def test_payload_without_event_is_a_fault():
    fn = FakeFunction("alpha")

    result = _run(fn, {"steps": {}})

    assert result.is_fault
    assert result.body.startswith("InvalidStepPayloadError: Invalid step payload: event")
    assert fn.calls == []


def test_non_object_and_malformed_payloads_are_faults():
    for payload in ([1, 2], b"{", b"", "null"):
        result = _run(FakeFunction("alpha"), payload)

        assert result.is_fault
        assert result.body.startswith("InvalidStepPayloadError: Invalid step payload")


def test_engine_failure_reports_traceback():
    fn = FakeFunction("alpha", error=ValueError("broken"))

    result = _run(fn, {"event": {}})

    assert result.is_fault
    assert result.http_status == 500
    assert "Traceback" in result.body
    assert result.body.endswith("ValueError: broken")
    assert result.error["name"] == "ValueError"
    assert result.error[SERIALIZED_KEY] is True


def test_outgoing_op_error_is_sent_as_pending_operation():
    op = {"id": "s1", "op": "Step", "error": {"name": "Error", "message": "step failed"}}
    fn = FakeFunction("alpha", error=OutgoingOpError(op))

    result = _run(fn, {"event": {}})

    assert result.status is StepStatus.PENDING_OPERATION
    assert result.body == op
    assert result.error["message"] == "step failed"
    assert result.error[SERIALIZED_KEY] is True


def test_malformed_engine_result_is_a_fault():
    result = _run(FakeFunction("alpha", result="nope"), {"event": {}})

    assert result.is_fault
    assert result.body == 'Unknown error: "nope"'

    result = _run(FakeFunction("alpha", result=(1, 2, 3)), {"event": {}})

    assert result.body == "Unknown error: [1, 2, 3]"
