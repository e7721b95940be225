import os

# production unless told otherwise
os.environ.setdefault("APP_ENV", "production")

from goalpost import create_app  # noqa: E402
from goalpost.extensions import socketio  # noqa: E402,F401

app = create_app()
