"""ASGI entrypoint for the product resolver API."""

from product_resolver.api.app import create_app
from product_resolver.containers import build_container

app = create_app(build_container())
