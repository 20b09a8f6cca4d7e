"""Pathwise marketing attribution: tracking agent and journey reconstruction."""

__version__ = "0.1.0"
