# purchases/api/__init__.py
