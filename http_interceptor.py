#!/usr/bin/env python3
"""
Bloom Relay - HTTP Interceptor
Redirects outbound HTTP/HTTPS requests of a monitored process to the Bloom relay
"""

import os
import sys
import urllib.request
from functools import wraps

import httpx
import requests
from requests.structures import CaseInsensitiveDict

from bypass_policy import BypassPolicy
from call_descriptor import CallDescriptor, RewrittenCall, normalize
from diagnostics import get_logger
from relay_config import ConfigurationError, RelayConfig, debug_enabled
from service_classifier import ServiceClassifier


INTERCEPTED_HEADER = 'X-Bloom-Intercepted'

# never forwarded in the caller's original form
STRIPPED_HEADERS = ('authorization', 'x-api-key', 'host')

RELAY_HEADERS = (
    'Authorization',
    'X-Agent-ID',
    'X-Original-Host',
    'X-Service-Name',
    'X-MCP-Service',
    INTERCEPTED_HEADER,
)

# set on a rewritten urllib Request so the response can report the caller's URL
ORIGINAL_URL_ATTR = 'bloom_original_url'


class RelayInterceptor:
    """Routes outbound calls through the relay.

    Holds everything a per-call decision needs (config, classifier and
    bypass policy) so the explicit transports in ``relay_transports`` and
    the process-wide hooks installed by :meth:`install` share one context.
    Only one instance can be installed globally per process.
    """

    _active = None

    def __init__(self, config, classifier=None, policy=None):
        self.config = config
        self.classifier = classifier or ServiceClassifier(
            override=config.service,
            known_only=config.known_services_only
        )
        self.policy = policy or BypassPolicy(relay_hostname=config.relay_hostname)
        self.logger = get_logger('bloom-proxy', config.debug)
        self._originals = []
        self.stats = {
            'requests_seen': 0,
            'requests_proxied': 0,
            'requests_bypassed': 0,
            'relay_errors': 0
        }

    @classmethod
    def from_env(cls, environ=None):
        return cls(RelayConfig.from_env(environ))

    @classmethod
    def active(cls):
        return cls._active

    def should_proxy(self, descriptor):
        if not isinstance(descriptor, CallDescriptor):
            descriptor = normalize(descriptor)

        allowed, reason = self.policy.check(descriptor.hostname)
        if not allowed:
            self.logger.debug(f"Bypassing {reason}")
            return False

        service = self.classifier.resolve(descriptor.hostname)
        if not service:
            self.logger.debug(f"Skipping unknown service: {descriptor.hostname}")
            return False

        if INTERCEPTED_HEADER in descriptor.headers:
            self.logger.debug(f"Already relayed: {descriptor.hostname}")
            return False

        return True

    def build_proxy_path(self, path, service):
        path = path or '/'
        if not path.startswith('/'):
            path = '/' + path
        return f"{self.config.relay_base_path}/proxy/{service}{path}"

    def rewrite(self, descriptor):
        if not isinstance(descriptor, CallDescriptor):
            descriptor = normalize(descriptor)

        service = self.classifier.resolve(descriptor.hostname)
        if not service:
            raise ValueError(f"No service for host {descriptor.hostname!r}")

        headers = CaseInsensitiveDict(
            (name, value) for name, value in descriptor.headers.items()
            if name.lower() not in STRIPPED_HEADERS
        )
        headers['Authorization'] = f"Bearer {self.config.credential}"
        headers['X-Agent-ID'] = self.config.agent_id
        headers['X-Original-Host'] = descriptor.hostname
        headers['X-Service-Name'] = service
        headers['X-MCP-Service'] = service
        headers[INTERCEPTED_HEADER] = 'true'

        return RewrittenCall(
            protocol=self.config.relay_scheme,
            netloc=self.config.relay_netloc,
            path=self.build_proxy_path(descriptor.path, service),
            query=descriptor.query,
            method=descriptor.method,
            headers=headers,
            body=descriptor.body,
            service=service,
            original_host=descriptor.hostname
        )

    def route(self, call, options=None):
        """Return the RewrittenCall for ``call``, or None when it passes through."""
        self.stats['requests_seen'] += 1

        try:
            descriptor = normalize(call, options)
        except ValueError as e:
            self.logger.debug(f"Bypassing unparseable request: {e}")
            self.stats['requests_bypassed'] += 1
            return None

        if not self.should_proxy(descriptor):
            self.stats['requests_bypassed'] += 1
            return None

        rewritten = self.rewrite(descriptor)
        self.stats['requests_proxied'] += 1
        self.logger.debug(f"Proxying {descriptor.method} {descriptor.url} -> {rewritten.url}")
        return rewritten

    def rewrite_prepared_request(self, request):
        rewritten = self.route(request)
        if rewritten is None:
            return None

        proxied = request.copy()
        proxied.url = rewritten.url
        proxied.headers = rewritten.headers
        return proxied

    def rewrite_httpx_request(self, request):
        rewritten = self.route(request)
        if rewritten is None:
            return None

        # repeated headers (Cookie, Accept) are forwarded as separate lines
        replaced = STRIPPED_HEADERS + tuple(name.lower() for name in RELAY_HEADERS)
        headers = [
            (name, value) for name, value in request.headers.multi_items()
            if name.lower() not in replaced
        ]
        headers.extend((name, rewritten.headers[name]) for name in RELAY_HEADERS)
        # a streamed httpx.Request is not re-prepared, so Host is set here
        headers.append(('Host', rewritten.netloc))

        return httpx.Request(
            rewritten.method,
            rewritten.url,
            headers=headers,
            stream=request.stream,
            extensions=request.extensions
        )

    def rewrite_urllib_request(self, request):
        rewritten = self.route(request)
        if rewritten is None:
            return request

        setattr(request, ORIGINAL_URL_ATTR, request.full_url)
        request.full_url = rewritten.url
        request.headers = {
            k: v for k, v in request.headers.items() if k.lower() not in STRIPPED_HEADERS
        }
        request.unredirected_hdrs = {
            k: v for k, v in request.unredirected_hdrs.items() if k.lower() not in STRIPPED_HEADERS
        }
        for name in RELAY_HEADERS:
            request.add_header(name, rewritten.headers[name])
        return request

    def restore_response(self, response, request):
        # the caller sees its own request, not the relay hop
        response.request = request
        response.url = request.url
        return response

    def restore_urllib_response(self, request, response):
        original_url = getattr(request, ORIGINAL_URL_ATTR, None)
        if original_url is not None:
            response.url = original_url
        return response

    def relay(self, send, *args, **kwargs):
        try:
            return send(*args, **kwargs)
        except Exception as e:
            self.stats['relay_errors'] += 1
            self.logger.debug(f"Proxy request error: {e}")
            raise

    async def relay_async(self, send, *args, **kwargs):
        try:
            return await send(*args, **kwargs)
        except Exception as e:
            self.stats['relay_errors'] += 1
            self.logger.debug(f"Proxy request error: {e}")
            raise

    def wrap_requests_adapter(self):
        interceptor = self

        original_send = requests.adapters.HTTPAdapter.send

        @wraps(original_send)
        def intercepted_send(adapter, request, *args, **kwargs):
            proxied = interceptor.rewrite_prepared_request(request)
            if proxied is None:
                return original_send(adapter, request, *args, **kwargs)

            response = interceptor.relay(original_send, adapter, proxied, *args, **kwargs)
            return interceptor.restore_response(response, request)

        requests.adapters.HTTPAdapter.send = intercepted_send
        self._originals.append((requests.adapters.HTTPAdapter, 'send', original_send))
        return True

    def wrap_httpx_transport(self):
        interceptor = self

        original_handle = httpx.HTTPTransport.handle_request
        original_async_handle = httpx.AsyncHTTPTransport.handle_async_request

        @wraps(original_handle)
        def intercepted_handle(transport, request):
            proxied = interceptor.rewrite_httpx_request(request)
            if proxied is None:
                return original_handle(transport, request)
            return interceptor.relay(original_handle, transport, proxied)

        @wraps(original_async_handle)
        async def intercepted_async_handle(transport, request):
            proxied = interceptor.rewrite_httpx_request(request)
            if proxied is None:
                return await original_async_handle(transport, request)
            return await interceptor.relay_async(original_async_handle, transport, proxied)

        httpx.HTTPTransport.handle_request = intercepted_handle
        httpx.AsyncHTTPTransport.handle_async_request = intercepted_async_handle
        self._originals.append((httpx.HTTPTransport, 'handle_request', original_handle))
        self._originals.append((httpx.AsyncHTTPTransport, 'handle_async_request', original_async_handle))
        return True

    def wrap_urllib_handlers(self):
        interceptor = self

        targets = [(urllib.request.HTTPHandler, 'http_request')]
        if hasattr(urllib.request, 'HTTPSHandler'):
            targets.append((urllib.request.HTTPSHandler, 'https_request'))

        # HTTPErrorProcessor is in every default opener and sees each response first-hand
        response_targets = [
            (urllib.request.HTTPErrorProcessor, 'http_response'),
            (urllib.request.HTTPErrorProcessor, 'https_response'),
        ]

        def make_hook(original):
            @wraps(original)
            def intercepted_request(handler, request):
                return original(handler, interceptor.rewrite_urllib_request(request))
            return intercepted_request

        def make_response_hook(original):
            @wraps(original)
            def restored_response(processor, request, response):
                response = interceptor.restore_urllib_response(request, response)
                return original(processor, request, response)
            return restored_response

        for handler_cls, name in targets:
            original = getattr(handler_cls, name)
            setattr(handler_cls, name, make_hook(original))
            self._originals.append((handler_cls, name, original))

        for processor_cls, name in response_targets:
            original = getattr(processor_cls, name)
            setattr(processor_cls, name, make_response_hook(original))
            self._originals.append((processor_cls, name, original))
        return True

    def install(self):
        if RelayInterceptor._active is not None:
            self.logger.debug('Interceptor already installed, skipping')
            return []

        installed = []

        if self.wrap_requests_adapter():
            installed.append('requests')
        if self.wrap_httpx_transport():
            installed.append('httpx')
        if self.wrap_urllib_handlers():
            installed.append('urllib')

        RelayInterceptor._active = self
        self.logger.debug(f"HTTP/HTTPS interception installed for: {', '.join(installed)}")
        return installed

    def uninstall(self):
        if RelayInterceptor._active is not self:
            return False

        for owner, name, original in reversed(self._originals):
            setattr(owner, name, original)
        self._originals = []
        RelayInterceptor._active = None

        self.logger.debug('HTTP/HTTPS interception removed')
        return True

    def get_stats(self):
        return self.stats


def install_from_env(environ=None):
    """Install the process-wide interceptor from ``BLOOM_*`` variables.

    Never raises: a missing or malformed credential or relay address
    leaves every entry point untouched and returns None.
    """
    environ = os.environ if environ is None else environ

    try:
        interceptor = RelayInterceptor.from_env(environ)
    except ConfigurationError as e:
        get_logger('bloom-proxy', debug_enabled(environ)).warning(f"Warning: {e}, interception disabled")
        return None

    if not interceptor.config.enabled:
        interceptor.logger.debug('Interception disabled by BLOOM_INTERCEPT_ENABLED')
        return None

    interceptor.logger.debug(f"Initializing with config: {interceptor.config.summary()}")
    interceptor.install()
    return RelayInterceptor.active()


def main():
    environ = dict(os.environ)
    environ.setdefault('BLOOM_AUTH', 'bloom_org_demo_agent_local')
    environ.setdefault('BLOOM_PROXY', 'http://localhost:8000')

    try:
        interceptor = RelayInterceptor.from_env(environ)
    except ConfigurationError as e:
        print(f"[!] {e}", file=sys.stderr)
        return 1

    calls = [
        'https://api.github.com/repos/octocat/hello-world',
        'https://api.openai.com/v1/models?limit=5',
        'https://google.serper.dev/search',
        'http://localhost:3000/health',
        'https://registry.npmjs.org/express',
        'http://192.168.1.20/status',
    ]

    for url in calls:
        rewritten = interceptor.route(url)
        target = rewritten.url if rewritten else 'pass-through'
        print(f"  {url}\n    -> {target}")

    print(f"\n--- Stats ---")
    print(interceptor.get_stats())
    return 0


if __name__ == '__main__':
    sys.exit(main())
