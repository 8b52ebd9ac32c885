"""Local data store for the wallet's peer-to-peer exchange offers."""

__version__ = "0.3.0"
