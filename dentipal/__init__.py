"""DentiPal - dental staffing marketplace core."""

__version__ = "0.1.0"
