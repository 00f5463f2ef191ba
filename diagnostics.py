#!/usr/bin/env python3
"""
Bloom Relay - Diagnostics
Bracket-tagged log lines on stderr, kept off stdout so the monitored
process's own protocol traffic is never disturbed
"""

import logging
import sys


LOG_FORMAT = '[%(name)s] %(message)s'


class StderrHandler(logging.StreamHandler):
    # sys.stderr is looked up on every emit so redirected streams are honoured

    def __init__(self):
        super().__init__(sys.stderr)

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value):
        pass


def get_logger(component='bloom-proxy', debug=False):
    logger = logging.getLogger(component)

    if not any(isinstance(h, StderrHandler) for h in logger.handlers):
        handler = StderrHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
        logger.setLevel(logging.DEBUG if debug else logging.WARNING)
    elif debug:
        # a later quiet caller must not silence one already debugging
        logger.setLevel(logging.DEBUG)

    return logger


def mask(secret, keep=10):
    if not secret:
        return 'missing'
    return secret[:keep] + '...'
