"""
Built-in targets

Importing this package registers every built-in backend.
"""

from . import c, python, lua  # noqa: F401
