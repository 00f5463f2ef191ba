"""Tests for running a target under the relay loader."""

import sys

import pytest

from http_interceptor import RelayInterceptor
from relay_loader import detect_target_type, main, run


class TestDetectTargetType:

    @pytest.mark.parametrize('target', ['./server.py', '../servers/github.py', '/opt/mcp/server.py', 'C:\\mcp\\server.py', 'server.py'])
    def test_file_targets(self, target):
        assert detect_target_type(target) == 'file'

    def test_existing_path_is_file(self, tmp_path, monkeypatch):
        (tmp_path / 'server').write_text('')
        monkeypatch.chdir(tmp_path)
        assert detect_target_type('server') == 'file'

    @pytest.mark.parametrize('target', ['mcp_server_fetch', 'mcp.server.github'])
    def test_module_targets(self, target):
        assert detect_target_type(target) == 'module'


class TestRun:

    @pytest.fixture
    def script(self, tmp_path, monkeypatch):
        monkeypatch.setattr(sys, 'argv', list(sys.argv))
        monkeypatch.setattr(sys, 'path', list(sys.path))
        path = tmp_path / 'server.py'
        path.write_text(
            'import sys\n'
            'from http_interceptor import RelayInterceptor\n'
            'ARGS = sys.argv[1:]\n'
            'INTERCEPTED = RelayInterceptor.active() is not None\n'
        )
        return path

    def test_runs_script_with_interception(self, script):
        result = run(str(script), ['--port', '9000'], {'BLOOM_AUTH': 'bloom_org_abc_agent_123'})
        assert result['ARGS'] == ['--port', '9000']
        assert result['INTERCEPTED'] is True
        assert sys.path[0] == str(script.parent)

    def test_runs_script_without_credential(self, script, capsys):
        result = run(str(script), [], {})
        assert result['INTERCEPTED'] is False
        assert RelayInterceptor.active() is None
        assert 'BLOOM_AUTH not set' in capsys.readouterr().err

    def test_main_requires_target(self, capsys):
        assert main([]) == 1
        assert 'Usage' in capsys.readouterr().err
