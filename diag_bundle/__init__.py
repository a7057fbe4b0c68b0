"""diag-bundle: best-effort host diagnostic collection and packaging."""

__version__ = "0.1.0"
