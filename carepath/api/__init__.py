# carepath/api/__init__.py
