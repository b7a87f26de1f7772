"""ASGI entrypoint for the Pixshop API."""

from pixshop.api.app import create_app
from pixshop.containers import build_container

app = create_app(build_container())
