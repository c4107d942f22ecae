"""ASGI entrypoint for the meal parser API."""

from meal_parser.api.app import create_app
from meal_parser.containers import build_container

app = create_app(build_container())
