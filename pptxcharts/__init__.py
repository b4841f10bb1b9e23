"""Read, validate and refresh the charts embedded in PowerPoint packages."""

__version__ = "0.1.0"
__all__ = [
    "cachecheck",
    "chartcache",
    "chartxml",
    "discover",
    "mixed",
    "opc",
    "overlay",
    "postflight",
    "rels",
]