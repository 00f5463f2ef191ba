"""Tests for the destinations that are never relayed."""

import pytest

from bypass_policy import BypassPolicy


class TestBypassPolicy:

    def setup_method(self):
        self.policy = BypassPolicy(relay_hostname='relay.bloom.test')

    @pytest.mark.parametrize('hostname', [
        'localhost',
        'api.localhost',
        '127.0.0.1',
        '127.1.2.3',
        '::1',
        '[::1]',
        '0.0.0.0',
        '10.0.0.5',
        '172.16.0.1',
        '172.31.255.255',
        '192.168.1.20',
    ])
    def test_local_addresses_bypass(self, hostname):
        allowed, reason = self.policy.check(hostname)
        assert allowed is False
        assert reason.startswith('local address')

    def test_relay_host_bypasses(self):
        allowed, reason = self.policy.check('relay.bloom.test')
        assert allowed is False
        assert reason.startswith('relay host')

    def test_host_containing_relay_bypasses(self):
        allowed, _ = self.policy.check('eu.relay.bloom.test')
        assert allowed is False

    @pytest.mark.parametrize('hostname', [
        'registry.npmjs.org',
        'registry.yarnpkg.com',
        'unpkg.com',
        'cdn.jsdelivr.net',
        'pypi.org',
        'files.pythonhosted.org',
        'api.bloomtechnologies.app',
    ])
    def test_registries_bypass(self, hostname):
        allowed, reason = self.policy.check(hostname)
        assert allowed is False
        assert reason.startswith('registry host')

    def test_registry_match_is_suffix_only(self):
        allowed, _ = self.policy.check('notpypi.org')
        assert allowed is True

    def test_relay_checked_before_locality(self):
        policy = BypassPolicy(relay_hostname='localhost')
        _, reason = policy.check('localhost')
        assert reason.startswith('relay host')

    @pytest.mark.parametrize('hostname', ['api.github.com', '172.15.0.1', '8.8.8.8', '172.32.0.1'])
    def test_external_hosts_allowed(self, hostname):
        allowed, reason = self.policy.check(hostname)
        assert allowed is True
        assert reason == 'external'

    def test_missing_hostname(self):
        assert self.policy.check('') == (False, 'no hostname')
        assert self.policy.check(None) == (False, 'no hostname')

    @pytest.mark.parametrize('hostname, reason', [
        ('localhost.', 'local address'),
        ('127.0.0.1.', 'local address'),
        ('api.localhost.', 'local address'),
        ('pypi.org.', 'registry host'),
        ('registry.npmjs.org.', 'registry host'),
        ('relay.bloom.test.', 'relay host'),
    ])
    def test_trailing_dot_hostnames_bypass(self, hostname, reason):
        allowed, actual = self.policy.check(hostname)
        assert allowed is False
        assert actual.startswith(reason)
