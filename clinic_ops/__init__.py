"""Clinic operations service: bookability, availability and engagement."""

__version__ = "0.1.0"
