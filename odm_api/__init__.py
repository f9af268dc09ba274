"""Ownership-chain resolution service for brand controversy data."""

__version__ = "0.1.0"
