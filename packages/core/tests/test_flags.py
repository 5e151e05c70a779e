"""Tests for per-company feature flags."""

from prquorum_core.flags import FeatureFlags, dispatch_flag


class TestFeatureFlags:
    def test_unknown_flag_is_disabled(self):
        assert FeatureFlags({}).is_enabled("anything", "acme") is False

    def test_none_config(self):
        assert FeatureFlags(None).is_enabled("anything", "acme") is False

    def test_bool_value(self):
        flags = FeatureFlags({"on": True, "off": False})
        assert flags.is_enabled("on", "acme") is True
        assert flags.is_enabled("off", "acme") is False

    def test_company_allowlist(self):
        flags = FeatureFlags({"beta": ["acme", "globex"]})
        assert flags.is_enabled("beta", "acme") is True
        assert flags.is_enabled("beta", "initech") is False

    def test_mapping_with_company_override(self):
        flags = FeatureFlags({"beta": {"default": True, "companies": {"initech": False}}})
        assert flags.is_enabled("beta", "acme") is True
        assert flags.is_enabled("beta", "initech") is False

    def test_mapping_defaults_to_off(self):
        flags = FeatureFlags({"beta": {"companies": {"acme": True}}})
        assert flags.is_enabled("beta", "acme") is True
        assert flags.is_enabled("beta", "globex") is False

    def test_unsupported_value_is_disabled(self):
        assert FeatureFlags({"weird": 3}).is_enabled("weird", "acme") is False


def test_dispatch_flag_name():
    assert dispatch_flag("openai") == "dispatch_openai"
