"""Krylov multigroup transport and response-matrix generation."""

__version__ = "0.1.0"
