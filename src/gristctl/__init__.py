"""gristctl: command-line client for the Grist REST API."""

__version__ = "0.4.0"
