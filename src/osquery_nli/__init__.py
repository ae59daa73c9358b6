"""osquery-nli: natural-language questions answered with osquery."""

__version__ = "0.1.0"
