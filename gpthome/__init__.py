"""A chat assistant that controls Home Assistant devices over HTTP."""

__version__ = "1.0.0"