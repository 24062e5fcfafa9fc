# backend/app/__init__.py
"""
Notion blog backend application package.

This package contains:
- main: FastAPI application entrypoint
- notion: Notion integration (client, normalizer, renderer, service, router)
- utils: environment variable helpers
"""
