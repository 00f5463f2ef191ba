#!/usr/bin/env python3
"""
Bloom Relay - Relay Configuration
Reads the relay address, caller credential and declared service from the
environment once at process start
"""

import os
import re
from dataclasses import dataclass
from urllib.parse import urlsplit

from diagnostics import mask


BLOOM_PROXY_PROD = 'https://api.bloomtechnologies.app'
BLOOM_PROXY_DEV = 'http://localhost:8000'

CREDENTIAL_RE = re.compile(r'^(?P<prefix>[A-Za-z0-9]+)_(?:org_)?(?P<org_key>\S+?)_agent_(?P<agent_id>\S+)$')
SERVICE_NAME_RE = re.compile(r'^[A-Za-z0-9][A-Za-z0-9._-]*$')


class RelayError(Exception):
    pass


class ConfigurationError(RelayError):
    pass


def _flag(value):
    return (value or '').strip().lower() in ('1', 'true', 'yes', 'on')


def parse_credential(credential):
    """Split ``<prefix>_[org_]<org-key>_agent_<agent-id>`` into ``(org_key, agent_id)``."""
    if not credential:
        raise ConfigurationError('BLOOM_AUTH not set')

    match = CREDENTIAL_RE.fullmatch(credential)
    if not match:
        raise ConfigurationError('Invalid BLOOM_AUTH format, expected bloom_org_<key>_agent_<id>')

    return match.group('org_key'), match.group('agent_id')


def debug_enabled(environ=None):
    environ = os.environ if environ is None else environ
    return _flag(environ.get('BLOOM_DEBUG')) or 'bloom' in environ.get('DEBUG', '')


def default_relay_url(environ=None):
    environ = os.environ if environ is None else environ
    if _flag(environ.get('BLOOM_DEV')) or environ.get('BLOOM_ENV') == 'development':
        return BLOOM_PROXY_DEV
    return BLOOM_PROXY_PROD


def validate_relay_url(relay_url):
    try:
        parts = urlsplit(relay_url)
        port = parts.port
    except ValueError as e:
        raise ConfigurationError(f"Invalid BLOOM_PROXY {relay_url!r}: {e}") from e

    if parts.scheme not in ('http', 'https') or not parts.hostname:
        raise ConfigurationError(f"Invalid BLOOM_PROXY {relay_url!r}: expected http(s)://host[:port]")
    if parts.query or parts.fragment:
        raise ConfigurationError(f"Invalid BLOOM_PROXY {relay_url!r}: query and fragment not allowed")

    return port


@dataclass(frozen=True)
class RelayConfig:
    relay_url: str
    credential: str
    org_key: str
    agent_id: str
    service: str = None
    debug: bool = False
    enabled: bool = True
    known_services_only: bool = False

    @classmethod
    def create(cls, credential, relay_url=BLOOM_PROXY_PROD, service=None, **kwargs):
        org_key, agent_id = parse_credential(credential)
        relay_url = (relay_url or '').strip()
        validate_relay_url(relay_url)

        service = (service or '').strip() or None
        if service and not SERVICE_NAME_RE.fullmatch(service):
            raise ConfigurationError(f"Invalid service name {service!r}")

        return cls(
            relay_url=relay_url.rstrip('/'),
            credential=credential,
            org_key=org_key,
            agent_id=agent_id,
            service=service,
            **kwargs
        )

    @classmethod
    def from_env(cls, environ=None):
        environ = os.environ if environ is None else environ

        return cls.create(
            credential=environ.get('BLOOM_AUTH', '').strip(),
            relay_url=environ.get('BLOOM_PROXY') or default_relay_url(environ),
            service=environ.get('MCP_SERVICE_NAME') or environ.get('BLOOM_SERVICE'),
            debug=debug_enabled(environ),
            enabled=environ.get('BLOOM_INTERCEPT_ENABLED', 'true').strip().lower() != 'false',
            known_services_only=_flag(environ.get('BLOOM_KNOWN_SERVICES_ONLY')),
        )

    @property
    def relay_scheme(self):
        return urlsplit(self.relay_url).scheme

    @property
    def relay_hostname(self):
        return urlsplit(self.relay_url).hostname

    @property
    def relay_port(self):
        parts = urlsplit(self.relay_url)
        return parts.port or (443 if parts.scheme == 'https' else 80)

    @property
    def relay_netloc(self):
        return urlsplit(self.relay_url).netloc

    @property
    def relay_base_path(self):
        return urlsplit(self.relay_url).path.rstrip('/')

    def summary(self):
        return {
            'service': self.service or 'auto-detect',
            'proxy': self.relay_url,
            'org_key': mask(self.org_key),
            'agent_id': self.agent_id,
        }
