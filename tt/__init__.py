"""tt: track temporary things and the people who care about them."""

__version__ = "0.1.0"
