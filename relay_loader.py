#!/usr/bin/env python3
"""
Bloom Relay - Proxy Loader
Installs the interceptor in the current interpreter, then runs the target
in-process, so the target's HTTP calls go through the relay

    python -m relay_loader <script.py | module> [args...]
"""

import os
import re
import runpy
import sys

from diagnostics import get_logger
from http_interceptor import install_from_env
from relay_config import debug_enabled


def detect_target_type(target):
    if target.startswith(('/', './', '../', '.\\', '..\\')):
        return 'file'

    # Windows absolute path
    if re.match(r'^[A-Za-z]:', target):
        return 'file'

    if target.endswith('.py') or os.path.exists(target):
        return 'file'

    return 'module'


def run(target, args=(), environ=None):
    logger = get_logger('bloom-proxy-loader', debug_enabled(environ))

    interceptor = install_from_env(environ)
    if interceptor is None:
        logger.debug('Running target without interception')

    target_type = detect_target_type(target)
    logger.debug(f"Target: {target} (type: {target_type})")

    sys.argv = [target] + list(args)

    if target_type == 'file':
        path = os.path.abspath(target)
        sys.path[0] = os.path.dirname(path)
        return runpy.run_path(path, run_name='__main__')

    return runpy.run_module(target, run_name='__main__', alter_sys=True)


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv

    if not argv:
        print('Usage: python -m relay_loader <script.py | module> [args...]', file=sys.stderr)
        return 1

    run(argv[0], argv[1:])
    return 0


if __name__ == '__main__':
    sys.exit(main())
