"""CineScout: movie search, infinite browsing and a local watch-later list."""

__version__ = "1.0.0"
