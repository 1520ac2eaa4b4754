"""testbridge modules.

Modules:
- core: Argument routing, daemon client, execution flows, output conversion
"""

# Lazy imports keep `testbridge --version` cheap
def __getattr__(name: str):
    if name == "core":
        from . import core
        return core
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = ["core"]
