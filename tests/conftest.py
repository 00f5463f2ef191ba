import logging
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

import httpx
import pytest
import requests

from http_interceptor import RelayInterceptor
from relay_config import RelayConfig


CREDENTIAL = 'bloom_org_abc_agent_123'
RELAY_URL = 'http://localhost:8000'

LOGGERS = ('bloom-proxy', 'bloom-proxy-loader', 'bloom-wrapper')


@pytest.fixture(autouse=True)
def _uninstall_interceptor(monkeypatch):
    # depends on monkeypatch so hooks are removed before patched fakes are undone
    yield
    active = RelayInterceptor.active()
    if active is not None:
        active.uninstall()


@pytest.fixture(autouse=True)
def _quiet_loggers():
    for name in LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    yield


@pytest.fixture
def relay_server():
    """A local HTTP server standing in for the relay; records (path, headers) per request."""
    seen = []

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            seen.append((self.path, self.headers))
            body = self.path.encode('ascii')
            self.send_response(200)
            self.send_header('Content-Length', str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format, *args):
            pass

    server = HTTPServer(('127.0.0.1', 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    yield f"http://127.0.0.1:{server.server_port}", seen

    server.shutdown()
    server.server_close()
    thread.join()


@pytest.fixture
def config():
    return RelayConfig.create(CREDENTIAL, RELAY_URL)


@pytest.fixture
def interceptor(config):
    return RelayInterceptor(config)


@pytest.fixture
def adapter_calls(monkeypatch):
    """Stand-in for requests' network layer; records every PreparedRequest sent."""
    sent = []

    def fake_send(adapter, request, **kwargs):
        sent.append(request)
        response = requests.Response()
        response.status_code = 200
        response._content = b'{"ok": true}'
        response.url = request.url
        response.request = request
        return response

    monkeypatch.setattr(requests.adapters.HTTPAdapter, 'send', fake_send)
    return sent


@pytest.fixture
def transport_calls(monkeypatch):
    """Stand-in for httpx's network layer, sync and async."""
    sent = []

    def fake_handle(transport, request):
        request.read()
        sent.append(request)
        return httpx.Response(200, json={'ok': True})

    async def fake_async_handle(transport, request):
        await request.aread()
        sent.append(request)
        return httpx.Response(200, json={'ok': True})

    monkeypatch.setattr(httpx.HTTPTransport, 'handle_request', fake_handle)
    monkeypatch.setattr(httpx.AsyncHTTPTransport, 'handle_async_request', fake_async_handle)
    return sent
