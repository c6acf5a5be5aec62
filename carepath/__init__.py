# carepath/__init__.py
