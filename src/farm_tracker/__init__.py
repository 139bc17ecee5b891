"""Read farm pools and holder stake positions through batched contract calls."""

__version__ = "0.1.0"
