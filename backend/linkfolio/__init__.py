"""LinkFolio - URL shortener with folders, analytics and a recycle bin."""

__version__ = "1.0.0"
