"""Tests for the Registry Gateway."""

from decimal import Decimal

from host_autopilot.conductor.transport import unpack
from host_autopilot.registry.gateway import RegistryGateway
from host_autopilot.rpc import holo_hash
from host_autopilot.rpc.signed_client import SignedRpcClient

from fakes import FakeAppInterface, make_agent_id, make_app_id, make_signer


def _make_gateway(results):
    signer = make_signer()
    app = FakeAppInterface(signer.agent_key, results)
    return RegistryGateway(SignedRpcClient(app, signer, "core-app")), app


def _published(n: int) -> dict:
    return {
        "id": make_app_id(n),
        "name": f"app {n}",
        "bundle_url": f"https://example.org/app{n}.happ",
        "provider_pubkey": make_agent_id(n),
        "jurisdictions": ["DE"],
        "host_settings": {"is_enabled": True, "is_host_disabled": False, "is_auto_disabled": False},
    }


class TestReads:
    def test_get_published_apps(self):
        gateway, app = _make_gateway({"get_happs": [_published(1), _published(2)]})
        apps = gateway.get_published_apps()
        assert [a.id for a in apps] == [make_app_id(1), make_app_id(2)]
        assert apps[0].host_settings.is_enabled
        assert app.calls[0]["zome_name"] == "hha"

    def test_get_hosting_preferences(self):
        gateway, _ = _make_gateway({"get_default_happ_preferences": {
            "price_compute": "0.1",
            "jurisdiction_prefs": {"value": ["DE"], "is_exclusion": False},
            "categories_prefs": None,
        }})
        prefs = gateway.get_hosting_preferences()
        assert prefs.price_compute == Decimal("0.1")
        assert prefs.jurisdiction_prefs.value == ["DE"]
        assert prefs.categories_prefs is None

    def test_get_app_pricing(self):
        gateway, app = _make_gateway({"get_happ_preferences": {
            "price_compute": "0", "price_storage": "0", "price_bandwidth": "0",
        }})
        assert gateway.get_app_pricing(make_app_id(3)).is_free()
        assert unpack(app.calls[0]["payload"]) == make_app_id(3)

    def test_get_pending_transactions_uses_holofuel(self):
        gateway, app = _make_gateway({"get_pending_transactions": {
            "invoice_pending": [], "promise_pending": [], "invoice_declined": [],
            "promise_declined": [], "accepted": [],
        }})
        gateway.get_pending_transactions()
        assert app.calls[0]["zome_name"] == "transactor"


class TestPublisherJurisdictionCache:
    def test_memoized_per_publisher(self):
        gateway, app = _make_gateway({"get_publisher_jurisdiction": "DE"})
        publisher = make_agent_id(7)
        assert gateway.get_publisher_jurisdiction(publisher) == "DE"
        assert gateway.get_publisher_jurisdiction(publisher) == "DE"
        assert len(app.calls) == 1

    def test_none_is_cached_too(self):
        gateway, app = _make_gateway({"get_publisher_jurisdiction": None})
        publisher = make_agent_id(7)
        assert gateway.get_publisher_jurisdiction(publisher) is None
        assert gateway.get_publisher_jurisdiction(publisher) is None
        assert len(app.calls) == 1

    def test_distinct_publishers_each_fetched(self):
        gateway, app = _make_gateway({"get_publisher_jurisdiction": "FR"})
        gateway.get_publisher_jurisdiction(make_agent_id(1))
        gateway.get_publisher_jurisdiction(make_agent_id(2))
        assert len(app.calls) == 2

    def test_sends_raw_agent_key(self):
        gateway, app = _make_gateway({"get_publisher_jurisdiction": "FR"})
        publisher = make_agent_id(4)
        gateway.get_publisher_jurisdiction(publisher)
        assert unpack(app.calls[0]["payload"]) == holo_hash.decode(publisher)

    def test_clear_cache(self):
        gateway, app = _make_gateway({"get_publisher_jurisdiction": "FR"})
        publisher = make_agent_id(1)
        gateway.get_publisher_jurisdiction(publisher)
        gateway.clear_cache()
        gateway.get_publisher_jurisdiction(publisher)
        assert len(app.calls) == 2


class TestSetAppEnabled:
    def test_enable(self):
        gateway, app = _make_gateway({"enable_happ": None})
        gateway.set_app_enabled(make_app_id(1), "host-1", True)
        assert app.calls[0]["fn_name"] == "enable_happ"
        assert unpack(app.calls[0]["payload"]) == {
            "happ_id": make_app_id(1),
            "holoport_id": "host-1",
        }

    def test_automated_disable(self):
        gateway, app = _make_gateway({"disable_happ": None})
        gateway.set_app_enabled(make_app_id(1), "host-1", False, is_automated=True)
        assert app.calls[0]["fn_name"] == "disable_happ"
        assert unpack(app.calls[0]["payload"])["is_automated"] is True
