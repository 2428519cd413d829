#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Tests for registration bodies, dev server discovery and the register flow.

Author: stepserve contributors
"""

import asyncio
import hashlib
import json

from conftest import FakeFunction, FakeTransport

from stepserve.core.config import DEFAULT_REGISTER_URL
from stepserve.core.data.backends import default_backend
from stepserve.protocols.gateway import index_functions
from stepserve.protocols.models import DEPLOY_TYPE, REGISTRATION_PROTOCOL_VERSION
from stepserve.protocols.registration import (
    DevServerDiscovery,
    RegistrationBuilder,
    RegistrationClient,
    dev_server_url,
    resolve_serve_url,
)
from stepserve.protocols.signing import SigningKeyManager
from stepserve.protocols.transport import TransportResponse

APP_NAME = "Test App"
SERVE_URL = "http://localhost:3000/api/steps"
DEV_PROBE_URL = "http://127.0.0.1:8288/dev"
DEV_REGISTER_URL = "http://127.0.0.1:8288/fn/register"


def _json_response(status, payload):
    return TransportResponse(status=status, reason="", body=json.dumps(payload).encode("utf-8"))


def _builder(**kwargs):
    functions = index_functions(APP_NAME, [FakeFunction("alpha"), FakeFunction("beta")])
    return RegistrationBuilder(APP_NAME, functions, "wsgi", "py:v0.1.0", **kwargs)


def _client(transport, signing_key=None, on_register=None):
    return RegistrationClient(
        _builder(),
        SigningKeyManager(signing_key),
        transport,
        DevServerDiscovery(transport, timeout=0.5),
        register_url=DEFAULT_REGISTER_URL,
        timeout=2.0,
        user_agent="stepserve-py:v0.1.0 (wsgi)",
        on_register=on_register,
    )


def test_dev_server_url_defaults_and_scheme_inference():
    assert dev_server_url() == "http://127.0.0.1:8288/"
    assert dev_server_url(None, "/dev") == DEV_PROBE_URL
    assert dev_server_url("localhost:9999", "/dev") == "http://localhost:9999/dev"
    assert dev_server_url("https://dev.example.com", "/fn/register") == (
        "https://dev.example.com/fn/register"
    )


def test_resolve_serve_url_strips_introspection_marker():
    assert resolve_serve_url(SERVE_URL + "?introspect") == SERVE_URL
    assert resolve_serve_url(SERVE_URL + "?introspect=&x=1") == SERVE_URL + "?x=1"


def test_resolve_serve_url_applies_overrides():
    resolved = resolve_serve_url(
        SERVE_URL + "?x=1#frag",
        serve_host="https://public.example.com",
        serve_path="/steps",
    )

    assert resolved == "https://public.example.com/steps?x=1"


def test_resolve_serve_url_defaults_empty_path():
    assert resolve_serve_url("http://localhost:3000") == "http://localhost:3000/"


def test_registration_body_shape():
    body = _builder().build(SERVE_URL)
    payload = body.to_payload()

    assert list(payload) == [
        "url",
        "deployType",
        "framework",
        "appName",
        "functions",
        "sdk",
        "v",
        "hash",
    ]
    assert payload["url"] == SERVE_URL
    assert payload["deployType"] == DEPLOY_TYPE
    assert payload["v"] == REGISTRATION_PROTOCOL_VERSION
    assert [fn["id"] for fn in payload["functions"]] == ["test-app-alpha", "test-app-beta"]


def test_hash_is_digest_of_body_without_hash():
    body = _builder().build(SERVE_URL)

    unhashed = default_backend.serialize(body.to_payload(include_hash=False))

    assert body.hash == hashlib.sha256(unhashed).hexdigest()


def test_hash_is_stable_and_sensitive_to_inputs():
    builder = _builder()

    first = builder.build(SERVE_URL).hash
    again = builder.build(SERVE_URL).hash
    introspected = builder.build(SERVE_URL + "?introspect").hash
    elsewhere = builder.build("http://localhost:4000/api/steps").hash

    assert first == again == introspected
    assert first != elsewhere


def test_probe_is_skipped_in_production(fake_transport):
    discovery = DevServerDiscovery(fake_transport, timeout=0.5)

    assert asyncio.run(discovery.probe(is_production=True)) is False
    assert fake_transport.calls == []


def test_probe_treats_errors_and_bad_statuses_as_unavailable():
    refused = FakeTransport()
    unhealthy = FakeTransport({("GET", DEV_PROBE_URL): TransportResponse(status=503)})
    healthy = FakeTransport({("GET", DEV_PROBE_URL): TransportResponse(status=200)})

    assert asyncio.run(DevServerDiscovery(refused).probe(is_production=False)) is False
    assert asyncio.run(DevServerDiscovery(unhealthy).probe(is_production=False)) is False
    assert asyncio.run(DevServerDiscovery(healthy).probe(is_production=False)) is True


def test_register_prefers_reachable_dev_server():
    transport = FakeTransport(
        {
            ("GET", DEV_PROBE_URL): TransportResponse(status=200),
            ("POST", DEV_REGISTER_URL): _json_response(200, {"status": 200}),
        }
    )

    outcome = asyncio.run(_client(transport).register(SERVE_URL, is_production=False))

    assert outcome.status == 200
    assert outcome.message == "Successfully registered"
    post = transport.calls_for("POST")[0]
    assert post.url == DEV_REGISTER_URL
    assert post.headers["Content-Type"] == "application/json"
    assert post.headers["User-Agent"] == "stepserve-py:v0.1.0 (wsgi)"
    assert "Authorization" not in post.headers
    sent = json.loads(post.body)
    assert sent["url"] == SERVE_URL
    assert sent["hash"]


def test_register_falls_back_to_configured_url_when_probe_fails():
    transport = FakeTransport({("POST", DEFAULT_REGISTER_URL): _json_response(200, {})})

    outcome = asyncio.run(_client(transport).register(SERVE_URL, is_production=False))

    assert outcome.status == 200
    assert [call.url for call in transport.calls] == [DEV_PROBE_URL, DEFAULT_REGISTER_URL]


def test_register_in_production_never_probes():
    transport = FakeTransport({("POST", DEFAULT_REGISTER_URL): _json_response(200, {})})

    asyncio.run(_client(transport).register(SERVE_URL, is_production=True))

    assert transport.calls_for("GET") == []


def test_register_uses_dev_server_hint():
    hint = "localhost:9999"
    transport = FakeTransport(
        {
            ("GET", "http://localhost:9999/dev"): TransportResponse(status=200),
            ("POST", "http://localhost:9999/fn/register"): _json_response(200, {}),
        }
    )

    outcome = asyncio.run(_client(transport).register(SERVE_URL, hint, is_production=False))

    assert outcome.status == 200
    assert transport.calls_for("POST")[0].url == "http://localhost:9999/fn/register"


def test_register_sends_derived_credential_not_the_key():
    transport = FakeTransport({("POST", DEFAULT_REGISTER_URL): _json_response(200, {})})
    signing_key = "signkey-prod-0a0b0c"

    asyncio.run(_client(transport, signing_key).register(SERVE_URL, is_production=True))

    authorization = transport.calls_for("POST")[0].headers["Authorization"]
    assert authorization.startswith("Bearer signkey-prod-")
    assert signing_key not in authorization


def test_transport_failure_becomes_500_outcome():
    outcome = asyncio.run(_client(FakeTransport()).register(SERVE_URL, is_production=True))

    assert outcome.status == 500
    assert outcome.message == "Failed to register; connection refused"


def test_cancelled_registration_becomes_500_outcome():
    transport = FakeTransport({("POST", DEFAULT_REGISTER_URL): asyncio.CancelledError()})

    outcome = asyncio.run(_client(transport).register(SERVE_URL, is_production=True))

    assert outcome.status == 500
    assert outcome.message == "Failed to register; registration was cancelled"


def test_unparseable_response_uses_defaults():
    transport = FakeTransport(
        {("POST", DEFAULT_REGISTER_URL): TransportResponse(status=502, body=b"<html>bad gateway")}
    )

    outcome = asyncio.run(_client(transport).register(SERVE_URL, is_production=True))

    assert outcome.status == 200
    assert outcome.message == "Successfully registered"
    assert outcome.skipped is False


def test_response_fields_fall_back_individually():
    transport = FakeTransport(
        {
            ("POST", DEFAULT_REGISTER_URL): _json_response(
                401, {"status": 401, "error": 5, "skipped": "not-a-bool"}
            )
        }
    )

    outcome = asyncio.run(_client(transport).register(SERVE_URL, is_production=True))

    assert outcome.status == 401
    assert outcome.message == "Successfully registered"
    assert outcome.skipped is False


def test_orchestrator_error_is_passed_through():
    transport = FakeTransport(
        {("POST", DEFAULT_REGISTER_URL): _json_response(401, {"status": 401, "error": "unauthorized"})}
    )

    outcome = asyncio.run(_client(transport).register(SERVE_URL, is_production=True))

    assert (outcome.status, outcome.message) == (401, "unauthorized")


def test_observer_notified_only_for_unskipped_registrations():
    records = []
    registered = FakeTransport({("POST", DEFAULT_REGISTER_URL): _json_response(200, {})})
    skipped = FakeTransport({("POST", DEFAULT_REGISTER_URL): _json_response(200, {"skipped": True})})

    asyncio.run(_client(registered, on_register=records.append).register(SERVE_URL, is_production=True))
    outcome = asyncio.run(
        _client(skipped, on_register=records.append).register(SERVE_URL, is_production=True)
    )

    assert outcome.skipped is True
    assert len(records) == 1
    record = records[0]
    assert record["url"] == DEFAULT_REGISTER_URL
    assert record["status"] == 200
    assert record["functions"] == 2
    assert record["hash"] == _builder().build(SERVE_URL).hash


def test_async_observer_is_awaited_and_its_failures_are_contained():
    seen = []

    async def observer(record):
        seen.append(record["status"])
        raise RuntimeError("observer broke")

    transport = FakeTransport({("POST", DEFAULT_REGISTER_URL): _json_response(200, {})})

    outcome = asyncio.run(_client(transport, on_register=observer).register(SERVE_URL, is_production=True))

    assert outcome.status == 200
    assert seen == [200]


def test_hash_ignores_its_own_field_and_tracks_function_configs():
    builder = _builder()
    body = builder.build(SERVE_URL)
    original = body.hash

    body.hash = "tampered"
    assert builder.compute_hash(body) == original

    changed = index_functions(
        APP_NAME,
        [
            FakeFunction("alpha"),
            FakeFunction("beta", config={"id": "test-app-beta", "name": "beta", "triggers": [{"cron": "* * * * *"}]}),
        ],
    )
    other = RegistrationBuilder(APP_NAME, changed, "wsgi", "py:v0.1.0").build(SERVE_URL)
    assert other.hash != original


def test_probe_timeout_still_registers_with_configured_url():
    transport = FakeTransport(
        {
            ("GET", DEV_PROBE_URL): asyncio.TimeoutError(),
            ("POST", DEFAULT_REGISTER_URL): _json_response(200, {"status": 200}),
        }
    )

    outcome = asyncio.run(_client(transport).register(SERVE_URL, is_production=False))

    assert (outcome.status, outcome.message) == (200, "Successfully registered")
    assert transport.calls_for("POST")[0].url == DEFAULT_REGISTER_URL


class _BrokenConfigFunction(FakeFunction):
    def get_config(self, url, app_name):
        raise RuntimeError("bad config")


def test_body_build_failure_becomes_500_outcome():
    transport = FakeTransport({("POST", DEFAULT_REGISTER_URL): _json_response(200, {})})
    functions = index_functions(APP_NAME, [FakeFunction("alpha"), _BrokenConfigFunction("beta")])
    client = RegistrationClient(
        RegistrationBuilder(APP_NAME, functions, "wsgi", "py:v0.1.0"),
        SigningKeyManager(None),
        transport,
        DevServerDiscovery(transport, timeout=0.5),
        register_url=DEFAULT_REGISTER_URL,
        timeout=2.0,
        user_agent="stepserve-py:v0.1.0 (wsgi)",
    )

    outcome = asyncio.run(client.register(SERVE_URL, is_production=True))

    assert (outcome.status, outcome.message) == (500, "Failed to register; bad config")
    assert transport.calls == []
