#!/usr/bin/env python3
"""
Bloom Relay - Universal Wrapper
Starts a Python MCP server (script path or module name) as a child process
with the relay loader injected, and forwards SIGINT/SIGTERM to it

    BLOOM_AUTH=bloom_org_XXX_agent_YYY bloom-wrapper <server.py | module> [args...]
"""

import argparse
import os
import signal
import subprocess
import sys

from diagnostics import get_logger
from relay_config import ConfigurationError, RelayConfig, debug_enabled, default_relay_url
from relay_loader import detect_target_type


def exit_status(returncode):
    if returncode < 0:
        return 128 - returncode
    return returncode


class RelayWrapper:
    # keep client libraries that insist on a key happy; the relay holds the real ones
    DUMMY_API_KEYS = ('FIRECRAWL_API_KEY', 'OPENAI_API_KEY', 'ANTHROPIC_API_KEY')
    DUMMY_KEY_VALUE = 'dummy-key-handled-by-bloom-proxy'

    FORWARDED_SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(self, target, target_args=None, environ=None):
        self.target = target
        self.target_args = list(target_args or [])
        self.environ = dict(os.environ if environ is None else environ)
        self.logger = get_logger('bloom-wrapper', debug_enabled(self.environ))
        self.child = None

    def validate(self):
        RelayConfig.from_env(self.build_env())

    def build_command(self):
        return [sys.executable, '-m', 'relay_loader', self.target] + self.target_args

    def build_env(self):
        env = dict(self.environ)

        if not env.get('BLOOM_PROXY'):
            env['BLOOM_PROXY'] = default_relay_url(env)

        loader_dir = os.path.dirname(os.path.abspath(__file__))
        python_path = env.get('PYTHONPATH')
        env['PYTHONPATH'] = loader_dir + (os.pathsep + python_path if python_path else '')

        for key in self.DUMMY_API_KEYS:
            if not env.get(key):
                env[key] = self.DUMMY_KEY_VALUE

        return env

    def _forward_signal(self, signum, frame):
        self.logger.debug(f"Received {signal.Signals(signum).name}, forwarding to child")
        if self.child is not None and self.child.poll() is None:
            self.child.send_signal(signum)

    def run(self):
        try:
            self.validate()
        except ConfigurationError as e:
            self.logger.error(f"ERROR: {e}")
            return 1

        self.logger.debug(f"Target: {self.target} (type: {detect_target_type(self.target)})")

        command = self.build_command()
        self.logger.debug(f"Spawning: {' '.join(command)}")

        try:
            self.child = subprocess.Popen(command, env=self.build_env())
        except OSError as e:
            self.logger.error(f"ERROR: Failed to start MCP server: {e}")
            return 1

        previous = {sig: signal.signal(sig, self._forward_signal) for sig in self.FORWARDED_SIGNALS}
        try:
            returncode = self.child.wait()
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)

        self.logger.debug(f"MCP server exited with code {returncode}")
        return exit_status(returncode)


def main(argv=None):
    parser = argparse.ArgumentParser(prog='bloom-wrapper', description='Run an MCP server through the Bloom relay')
    parser.add_argument('target', help='Python script path or module name of the MCP server')
    parser.add_argument('args', nargs=argparse.REMAINDER, help='Arguments passed to the MCP server')

    args = parser.parse_args(argv)

    wrapper = RelayWrapper(args.target, args.args)
    return wrapper.run()


if __name__ == '__main__':
    sys.exit(main())
