"""Tests for the Action Fabric."""

from host_autopilot.errors import RemoteError
from host_autopilot.execution.fabric import ActionFabric
from host_autopilot.models.actions import ActionType, PlannedAction
from host_autopilot.models.apps import PublishedApp

from fakes import FakeAdmin, FakeInstaller, FakeRegistry, make_agent_id, make_app_id

APP = make_app_id(1)


def _make_app() -> PublishedApp:
    return PublishedApp(
        id=APP,
        bundle_url="https://example.org/a.happ",
        provider_pubkey=make_agent_id(1),
    )


def _make_fabric(host_id="host-1", enabled=(), apps=None):
    admin = FakeAdmin(enabled=list(enabled))
    registry = FakeRegistry(apps=apps if apps is not None else [_make_app()])
    fabric = ActionFabric(admin, registry, FakeInstaller(admin, registry), host_id=host_id)
    return fabric, admin, registry


def _action(action_type: ActionType, target: str = APP) -> PlannedAction:
    return PlannedAction(action_type=action_type, target=target, app_id=APP, reason="test")


class TestActionFabric:
    def test_executes_in_plan_order(self):
        fabric, admin, _ = _make_fabric(enabled=["a", "b"])
        result = fabric.execute([
            _action(ActionType.DISABLE, "a"),
            _action(ActionType.UNINSTALL, "b"),
        ])
        assert admin.calls == [("disable", "a"), ("uninstall", "b")]
        assert result.success
        assert len(result.actions_completed) == 2

    def test_failure_is_isolated(self):
        fabric, admin, _ = _make_fabric(enabled=["a", "b"])
        admin.fail_on["a"] = RemoteError("refused")

        result = fabric.execute([
            _action(ActionType.DISABLE, "a"),
            _action(ActionType.DISABLE, "b"),
        ])

        assert not result.success
        assert result.actions_failed[0]["target"] == "a"
        assert "refused" in result.actions_failed[0]["error"]
        assert result.actions_completed[0]["target"] == "b"
        assert admin.apps["b"] is False

    def test_install_uses_published_record(self):
        fabric, admin, registry = _make_fabric()
        result = fabric.execute(
            [_action(ActionType.INSTALL)], apps={APP: registry.apps[APP]}
        )
        assert result.success
        assert admin.apps[APP] is True

    def test_install_without_record_fails(self):
        fabric, _, _ = _make_fabric()
        result = fabric.execute([_action(ActionType.INSTALL)])
        assert not result.success
        assert "no published app record" in result.actions_failed[0]["error"]

    def test_registry_toggles(self):
        fabric, _, registry = _make_fabric()
        fabric.execute([
            _action(ActionType.REGISTRY_ENABLE),
            _action(ActionType.REGISTRY_DISABLE),
        ])
        assert registry.toggles == [(APP, "host-1", True), (APP, "host-1", False)]

    def test_registry_toggle_needs_host_id(self):
        fabric, _, registry = _make_fabric(host_id=None)
        result = fabric.execute([_action(ActionType.REGISTRY_ENABLE)])
        assert not result.success
        assert registry.toggles == []

    def test_custom_executor(self):
        fabric, admin, _ = _make_fabric()
        seen = []
        fabric.register_executor(ActionType.ENABLE, seen.append)
        fabric.execute([_action(ActionType.ENABLE)])
        assert [a.target for a in seen] == [APP]
        assert admin.calls == []

    def test_result_records_reason(self):
        fabric, _, _ = _make_fabric(enabled=[APP])
        result = fabric.execute([_action(ActionType.DISABLE)], run_id="run_1")
        assert result.run_id == "run_1"
        assert result.actions_completed[0]["reason"] == "test"
        assert result.actions_completed[0]["action_type"] == "disable"
