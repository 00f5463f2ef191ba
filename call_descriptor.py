#!/usr/bin/env python3
"""
Bloom Relay - Call Descriptors
One normalized view of an outbound call, whatever shape the caller used:
a URL string, an options mapping, a URL plus options, or a request object
from requests, httpx or urllib
"""

import urllib.request
from collections.abc import Mapping
from urllib.parse import urlsplit

import httpx
import requests
from requests.structures import CaseInsensitiveDict


DEFAULT_PORTS = {'http': 80, 'https': 443}


def _split_path(path):
    path = path or ''
    if '?' in path:
        path, query = path.split('?', 1)
    else:
        query = ''
    return path, query


def _format_host(hostname):
    if ':' in hostname:
        return f"[{hostname}]"
    return hostname


class CallDescriptor:
    def __init__(self, protocol, hostname, port=None, path='/', query='', method='GET', headers=None, body=None):
        self.protocol = (protocol or 'http').lower().rstrip(':')
        self.hostname = (hostname or '').lower()
        self.port = int(port) if port else DEFAULT_PORTS.get(self.protocol, 80)
        self.path = path or '/'
        self.query = query or ''
        self.method = (method or 'GET').upper()
        self.headers = CaseInsensitiveDict(headers or {})
        self.body = body

    @property
    def netloc(self):
        host = _format_host(self.hostname)
        if self.port == DEFAULT_PORTS.get(self.protocol):
            return host
        return f"{host}:{self.port}"

    @property
    def url(self):
        url = f"{self.protocol}://{self.netloc}{self.path}"
        if self.query:
            url += '?' + self.query
        return url

    def as_options(self):
        return {
            'protocol': self.protocol,
            'hostname': self.hostname,
            'port': self.port,
            'path': self.path + ('?' + self.query if self.query else ''),
            'method': self.method,
            'headers': dict(self.headers),
            'body': self.body,
        }

    @classmethod
    def from_url(cls, url, method='GET', headers=None, body=None, default_protocol='http'):
        if isinstance(url, bytes):
            url = url.decode('ascii')
        url = str(url).strip()
        if '://' not in url and not url.startswith('//'):
            url = f"{default_protocol}://{url}"

        parts = urlsplit(url)
        if not parts.hostname:
            raise ValueError(f"No host in {url!r}")

        return cls(
            protocol=parts.scheme or default_protocol,
            hostname=parts.hostname,
            port=parts.port,
            path=parts.path,
            query=parts.query,
            method=method,
            headers=headers,
            body=body,
        )

    @classmethod
    def from_options(cls, options, default_protocol='http'):
        protocol = options.get('protocol') or options.get('scheme') or default_protocol
        hostname = options.get('hostname')
        port = options.get('port')

        if not hostname and options.get('host'):
            host = urlsplit('//' + options['host'])
            hostname = host.hostname
            port = port or host.port
        if not hostname:
            raise ValueError('No hostname or host in call options')

        path, query = _split_path(options.get('path') or options.get('pathname'))
        query = query or (options.get('search') or options.get('query') or '').lstrip('?')

        return cls(
            protocol=protocol,
            hostname=hostname,
            port=port,
            path=path,
            query=query,
            method=options.get('method'),
            headers=options.get('headers'),
            body=options.get('body', options.get('data')),
        )

    @classmethod
    def from_httpx_request(cls, request):
        path, query = _split_path(request.url.raw_path.decode('ascii'))
        return cls(
            protocol=request.url.scheme,
            hostname=request.url.raw_host.decode('ascii'),
            port=request.url.port,
            path=path,
            query=query,
            method=request.method,
            headers=request.headers.multi_items(),
            body=request.stream,
        )

    @classmethod
    def from_prepared_request(cls, request):
        return cls.from_url(request.url, request.method, request.headers, request.body)

    @classmethod
    def from_urllib_request(cls, request):
        return cls.from_url(request.full_url, request.get_method(), dict(request.header_items()), request.data)

    def __repr__(self):
        return f"<CallDescriptor {self.method} {self.url}>"


class RewrittenCall:
    def __init__(self, protocol, netloc, path, query, method, headers, body, service, original_host):
        self.protocol = protocol
        self.netloc = netloc
        self.path = path
        self.query = query
        self.method = method
        self.headers = headers
        self.body = body
        self.service = service
        self.original_host = original_host

    @property
    def url(self):
        url = f"{self.protocol}://{self.netloc}{self.path}"
        if self.query:
            url += '?' + self.query
        return url

    def __repr__(self):
        return f"<RewrittenCall {self.method} {self.url} service={self.service}>"


def normalize(call, options=None, default_protocol='http'):
    """Build a CallDescriptor from any supported call shape.

    ``options`` only applies to URL strings and option mappings; its keys
    override the parts taken from ``call``.
    """
    if isinstance(call, httpx.Request):
        return CallDescriptor.from_httpx_request(call)
    if isinstance(call, requests.PreparedRequest):
        return CallDescriptor.from_prepared_request(call)
    if isinstance(call, urllib.request.Request):
        return CallDescriptor.from_urllib_request(call)

    if isinstance(call, (str, bytes)):
        descriptor = CallDescriptor.from_url(call, default_protocol=default_protocol)
        if not options:
            return descriptor
        merged = descriptor.as_options()
        if 'host' in options and 'hostname' not in options:
            merged.pop('hostname')
            merged.pop('port')
        merged.update(options)
        return CallDescriptor.from_options(merged, default_protocol)

    if isinstance(call, Mapping):
        merged = dict(call)
        merged.update(options or {})
        return CallDescriptor.from_options(merged, default_protocol)

    raise TypeError(f"Unsupported call shape: {type(call).__name__}")
