# service/__init__.py
# Re-export of the submodules so "from service import db" etc. works.
from . import config
from . import db

__all__ = [
    "config",
    "db",
]
