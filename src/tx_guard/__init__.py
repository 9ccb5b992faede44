"""Decode, classify and risk-assess EVM transactions before they are signed."""

__version__ = "1.0.0"
