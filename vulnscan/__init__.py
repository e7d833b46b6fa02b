"""Vulnerability scan results: types, scan drivers, RPC conversions and report writers."""

__version__ = "0.1.0"