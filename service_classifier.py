#!/usr/bin/env python3
"""
Bloom Relay - Service Classifier
Maps a destination hostname to the logical service the relay routes it to
"""

import ipaddress
import re


class ServiceClassifier:
    SERVICE_MAP = {
        'api.github.com': 'github',
        'api.notion.com': 'notion',
        'api.slack.com': 'slack',
        'slack.com': 'slack',
        'api.openai.com': 'openai',
        'api.anthropic.com': 'anthropic',
        'api.firecrawl.dev': 'firecrawl',
        'api.hubspot.com': 'hubspot',
        'api.salesforce.com': 'salesforce',
        'api.stripe.com': 'stripe',
        'api.twilio.com': 'twilio',
        'serper.dev': 'serper',
    }

    GENERIC_PREFIXES = ('api', 'www')

    LABEL_RE = re.compile(r'^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?$')

    def __init__(self, service_map=None, override=None, known_only=False):
        self.service_map = dict(service_map or self.SERVICE_MAP)
        self.override = override or None
        self.known_only = known_only

    def classify(self, hostname):
        """Return the service token for ``hostname`` or None.

        The fixed table is consulted first (exact or containing match).
        Unless ``known_only`` is set, unknown hosts fall back to the
        leading hostname label, skipping a generic ``api.``/``www.`` prefix.
        """
        hostname = self._clean(hostname)
        if not hostname:
            return None

        for domain, service in self.service_map.items():
            if hostname == domain or domain in hostname:
                return service

        if self.known_only:
            return None

        return self._from_labels(hostname)

    def resolve(self, hostname):
        # a declared service wins over anything the hostname says
        if self.override:
            return self.override
        return self.classify(hostname)

    def _clean(self, hostname):
        if not hostname or not isinstance(hostname, str):
            return ''
        hostname = hostname.strip().lower()
        if hostname.startswith('[') and hostname.endswith(']'):
            hostname = hostname[1:-1]
        if hostname.endswith('.'):
            hostname = hostname[:-1]
        return hostname

    def _from_labels(self, hostname):
        try:
            ipaddress.ip_address(hostname)
            return None
        except ValueError:
            pass

        labels = hostname.split('.')
        if not all(self.LABEL_RE.match(label) for label in labels):
            return None

        if labels[0] in self.GENERIC_PREFIXES and len(labels) > 2:
            return labels[1]
        return labels[0]


_default_classifier = ServiceClassifier()


def extract_service_name(hostname):
    return _default_classifier.classify(hostname)


def main():
    hosts = [
        'api.github.com',
        'api.openai.com',
        'google.serper.dev',
        'myapi.example.com',
        'api.unknown.com',
        '10.0.0.4',
        '',
    ]
    for host in hosts:
        print(f"{host or '<empty>':24} -> {extract_service_name(host)}")


if __name__ == '__main__':
    main()
