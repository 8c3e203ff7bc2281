"""Release catalog query and artifact-resolution engine."""

__version__ = "0.1.0"
