"""Prototype store: JSON module documents for click-through prototypes."""

__version__ = "0.1.0"
