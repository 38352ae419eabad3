"""ASGI entrypoint for the prize wheel API."""

from prize_wheel.api.app import create_app
from prize_wheel.containers import build_container

app = create_app(build_container())
