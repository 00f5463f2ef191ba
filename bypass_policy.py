#!/usr/bin/env python3
"""
Bloom Relay - Bypass Policy
Decides which destinations must always reach their real host:
the relay itself, local and private addresses, package registries and CDNs
"""

import ipaddress


class BypassPolicy:
    LOOPBACK_HOSTS = ('localhost', '0.0.0.0', '::1')

    LOCAL_NETWORKS = (
        ipaddress.ip_network('127.0.0.0/8'),
        ipaddress.ip_network('10.0.0.0/8'),
        ipaddress.ip_network('172.16.0.0/12'),
        ipaddress.ip_network('192.168.0.0/16'),
        ipaddress.ip_network('::1/128'),
    )

    REGISTRY_DOMAINS = (
        'registry.npmjs.org',
        'registry.yarnpkg.com',
        'unpkg.com',
        'cdn.jsdelivr.net',
        'pypi.org',
        'files.pythonhosted.org',
        'bloomtechnologies.app',
    )

    def __init__(self, relay_hostname=None, registry_domains=None):
        self.relay_hostname = (relay_hostname or '').lower()
        self.registry_domains = tuple(registry_domains or self.REGISTRY_DOMAINS)

    def check(self, hostname):
        """Return ``(allowed, reason)``; ``allowed`` False means pass through untouched."""
        hostname = (hostname or '').strip().lower().strip('[]').rstrip('.')
        if not hostname:
            return False, 'no hostname'

        # relay first, otherwise a rewritten call would be rewritten again
        if self.is_relay(hostname):
            return False, f"relay host: {hostname}"

        if self.is_local(hostname):
            return False, f"local address: {hostname}"

        if self.is_registry(hostname):
            return False, f"registry host: {hostname}"

        return True, 'external'

    def is_relay(self, hostname):
        if not self.relay_hostname:
            return False
        return hostname == self.relay_hostname or self.relay_hostname in hostname

    def is_local(self, hostname):
        if hostname in self.LOOPBACK_HOSTS or hostname.endswith('.localhost'):
            return True

        try:
            address = ipaddress.ip_address(hostname)
        except ValueError:
            return False

        return any(address in network for network in self.LOCAL_NETWORKS if network.version == address.version)

    def is_registry(self, hostname):
        for domain in self.registry_domains:
            if hostname == domain or hostname.endswith('.' + domain):
                return True
        return False
