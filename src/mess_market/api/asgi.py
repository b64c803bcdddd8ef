"""ASGI entrypoint for the mess market API."""

from mess_market.api.app import create_app
from mess_market.containers import build_container

app = create_app(build_container())
