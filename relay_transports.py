#!/usr/bin/env python3
"""
Bloom Relay - Relay Transports
Explicit middleware for clients built by the monitored process itself:
an httpx transport, a requests adapter and a urllib handler that route
calls through a RelayInterceptor without patching anything global
"""

import urllib.request

import httpx
import requests


class RelayTransport(httpx.BaseTransport):
    def __init__(self, interceptor, transport=None):
        self.interceptor = interceptor
        self.transport = transport or httpx.HTTPTransport()

    def handle_request(self, request):
        proxied = self.interceptor.rewrite_httpx_request(request)
        if proxied is None:
            return self.transport.handle_request(request)

        response = self.interceptor.relay(self.transport.handle_request, proxied)
        response.request = request
        return response

    def close(self):
        self.transport.close()


class AsyncRelayTransport(httpx.AsyncBaseTransport):
    def __init__(self, interceptor, transport=None):
        self.interceptor = interceptor
        self.transport = transport or httpx.AsyncHTTPTransport()

    async def handle_async_request(self, request):
        proxied = self.interceptor.rewrite_httpx_request(request)
        if proxied is None:
            return await self.transport.handle_async_request(request)

        response = await self.interceptor.relay_async(self.transport.handle_async_request, proxied)
        response.request = request
        return response

    async def aclose(self):
        await self.transport.aclose()


class RelayAdapter(requests.adapters.HTTPAdapter):
    def __init__(self, interceptor, **kwargs):
        self.interceptor = interceptor
        super().__init__(**kwargs)

    def send(self, request, **kwargs):
        proxied = self.interceptor.rewrite_prepared_request(request)
        if proxied is None:
            return super().send(request, **kwargs)

        response = self.interceptor.relay(super().send, proxied, **kwargs)
        return self.interceptor.restore_response(response, request)


class RelayHandler(urllib.request.BaseHandler):
    # runs before AbstractHTTPHandler fills in Host for the original destination
    handler_order = 100

    def __init__(self, interceptor):
        self.interceptor = interceptor

    def http_request(self, request):
        return self.interceptor.rewrite_urllib_request(request)

    https_request = http_request

    def http_response(self, request, response):
        return self.interceptor.restore_urllib_response(request, response)

    https_response = http_response


def relay_session(interceptor, **adapter_kwargs):
    session = requests.Session()
    adapter = RelayAdapter(interceptor, **adapter_kwargs)
    session.mount('http://', adapter)
    session.mount('https://', adapter)
    return session


def relay_client(interceptor, transport=None, **client_kwargs):
    return httpx.Client(transport=RelayTransport(interceptor, transport), **client_kwargs)


def relay_async_client(interceptor, transport=None, **client_kwargs):
    return httpx.AsyncClient(transport=AsyncRelayTransport(interceptor, transport), **client_kwargs)


def relay_opener(interceptor, *handlers):
    return urllib.request.build_opener(RelayHandler(interceptor), *handlers)
