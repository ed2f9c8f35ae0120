"""Version stamping."""

from hubpack.versioning.stamper import VersionStamper, detect_encoding

__all__ = [
    "VersionStamper",
    "detect_encoding",
]
