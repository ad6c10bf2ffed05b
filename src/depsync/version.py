"""Version information for depsync."""

__all__ = ["VERSION"]

VERSION = "0.1.0"
