# backend/settings/__init__.py
"""
PATH: backend/settings/__init__.py

Settings package. Nothing is imported here; pick a concrete module with
DJANGO_SETTINGS_MODULE:
- backend.settings.dev   (local development, tests)
- backend.settings.prod  (production, Postgres)
"""
