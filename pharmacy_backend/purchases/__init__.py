# purchases/__init__.py
