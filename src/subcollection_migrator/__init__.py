"""Promote embedded-array fields into child subcollections."""

__version__ = "0.3.0"
