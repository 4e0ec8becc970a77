from __future__ import annotations


def create_app(services=None):
    # Lazy: framenote.review imports without Flask or the database.
    from .server import create_app as _create_app

    return _create_app(services)
