"""Tests for installed-id classification."""

import pytest

from host_autopilot.models.instances import InstanceKind
from host_autopilot.reconciler.classifier import classify_installed_app, servicelogger_id

from fakes import make_agent_id, make_app_id

DESIRED = make_app_id(1)
STALE = make_app_id(2)
AGENT = make_agent_id(3)


class TestClassifier:
    def test_anonymous(self):
        instance = classify_installed_app(DESIRED, [DESIRED])
        assert instance.kind == InstanceKind.ANONYMOUS
        assert instance.app_id == DESIRED

    def test_identified(self):
        instance = classify_installed_app(f"{DESIRED}::{AGENT}", [DESIRED])
        assert instance.kind == InstanceKind.IDENTIFIED
        assert instance.app_id == DESIRED
        assert instance.agent_id == AGENT

    def test_companion(self):
        instance = classify_installed_app(servicelogger_id(DESIRED), [DESIRED])
        assert instance.kind == InstanceKind.SERVICE_LOG_COMPANION
        assert instance.app_id == DESIRED

    def test_companion_of_stale_app(self):
        instance = classify_installed_app(f"{STALE}::servicelogger", [DESIRED])
        assert instance.kind == InstanceKind.SERVICE_LOG_COMPANION
        assert instance.app_id == STALE

    def test_stale_anonymous(self):
        instance = classify_installed_app(STALE, [DESIRED])
        assert instance.kind == InstanceKind.ANONYMOUS
        assert instance.app_id == STALE

    def test_stale_identified(self):
        instance = classify_installed_app(f"{STALE}::{AGENT}", [DESIRED])
        assert instance.kind == InstanceKind.IDENTIFIED
        assert instance.app_id == STALE

    def test_desired_app_without_hosted_prefix(self):
        instance = classify_installed_app("chat-app::agent7", ["chat-app"])
        assert instance.kind == InstanceKind.IDENTIFIED
        assert instance.app_id == "chat-app"

    @pytest.mark.parametrize("installed_id", [
        "core-app:0_2_1",
        "servicelogger:0_2_1::251e7cc8-9c48-4841-9eb0-435f0bf97373",
        "holofuel:0_5_3",
        "cloud-console",
        "",
    ])
    def test_infrastructure(self, installed_id):
        instance = classify_installed_app(installed_id, [DESIRED])
        assert instance.kind == InstanceKind.INFRASTRUCTURE
        assert instance.app_id is None
        assert not instance.is_hosted

    def test_total_and_exclusive(self):
        ids = [
            DESIRED, STALE, f"{DESIRED}::{AGENT}", servicelogger_id(DESIRED),
            "core-app:0_2_1", f"{STALE}::servicelogger", "x::y",
        ]
        for installed_id in ids:
            instance = classify_installed_app(installed_id, [DESIRED])
            assert instance.kind in set(InstanceKind)
