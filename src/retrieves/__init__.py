"""Vulnerability location sync for Fluid Attacks group checkouts."""

__version__ = "0.1.0"
