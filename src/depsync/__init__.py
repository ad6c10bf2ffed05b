"""depsync: keep Go module dependencies in sync across repositories."""

from depsync.version import VERSION

__version__ = VERSION
__all__ = ["__version__", "VERSION"]
