"""WSGI entry point: ``gunicorn framenote.wsgi:app``."""

from __future__ import annotations

import os

from . import create_app

app = create_app()

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.environ.get("FRAMENOTE_PORT", "5000")))
