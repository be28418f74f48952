"""Parse Keep a Changelog documents into a structured, queryable model."""

from .parsing import Changelog, Diagnostics, SourceFiles, parse

__version__ = "0.1.0"

__all__ = ["Changelog", "Diagnostics", "SourceFiles", "parse", "__version__"]
