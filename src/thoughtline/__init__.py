"""thoughtline: tag queries and thought outlines over markdown outline vaults."""

__version__ = "0.3.0"
