"""
Tests for src/backend/net/proxy.py

Covers:
- UpstreamConfig defaults and validation
- URL building
- Persist round trip and tolerant parsing
"""

import unittest

from src.backend.net.proxy import UpstreamConfig


class TestUpstreamConfig(unittest.TestCase):
    """Tests for UpstreamConfig."""

    def test_defaults(self):
        """TLS verification stays on unless configured otherwise."""
        config = UpstreamConfig()
        self.assertEqual(config.origin_url, "https://incall.changan.com.cn")
        self.assertEqual(config.timeout_s, 30.0)
        self.assertFalse(config.insecure_skip_verify)
        self.assertEqual(config.host, "incall.changan.com.cn")

    def test_url_for_joins_single_slash(self):
        config = UpstreamConfig(origin_url="https://origin:8443/")
        self.assertEqual(config.url_for("/a/b"), "https://origin:8443/a/b")
        self.assertEqual(config.url_for("a/b"), "https://origin:8443/a/b")
        self.assertEqual(config.host, "origin:8443")

    def test_valid_config(self):
        self.assertEqual(UpstreamConfig().validate(), (True, ""))

    def test_empty_url_invalid(self):
        ok, msg = UpstreamConfig(origin_url="  ").validate()
        self.assertFalse(ok)
        self.assertIn("empty", msg)

    def test_unsupported_scheme_invalid(self):
        ok, msg = UpstreamConfig(origin_url="ftp://origin").validate()
        self.assertFalse(ok)
        self.assertIn("scheme", msg)

    def test_missing_host_invalid(self):
        ok, _ = UpstreamConfig(origin_url="https://").validate()
        self.assertFalse(ok)

    def test_relative_path_invalid(self):
        ok, _ = UpstreamConfig(hu_tags_path="getHuTags").validate()
        self.assertFalse(ok)

    def test_persist_round_trip(self):
        config = UpstreamConfig(origin_url="http://127.0.0.1:9000", timeout_s=5, insecure_skip_verify=True)
        restored = UpstreamConfig.from_persist_dict(config.to_persist_dict())
        self.assertEqual(restored, config)

    def test_bad_timeout_falls_back(self):
        self.assertEqual(UpstreamConfig.from_persist_dict({"timeout_s": "soon"}).timeout_s, 30.0)
        self.assertEqual(UpstreamConfig.from_persist_dict({"timeout_s": -1}).timeout_s, 30.0)


if __name__ == "__main__":
    unittest.main()
