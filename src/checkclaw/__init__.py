"""checkclaw - command-line client for the checkclaw finance aggregation API."""

__version__ = "0.1.0"
