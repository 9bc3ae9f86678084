"""CSV-driven joiner/leaver batch tool for an Entra ID style directory."""

__version__ = "0.1.0"
