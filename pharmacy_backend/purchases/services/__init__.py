# purchases/services/__init__.py
