"""Bin clustering, truck assignment and route sequencing for waste collection."""

__version__ = "0.1.0"
