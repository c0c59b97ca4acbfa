"""Checking that declared dependency versions agree with the files that use them."""

__version__ = "0.5.0"