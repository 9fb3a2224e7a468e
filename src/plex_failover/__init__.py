"""plex-failover: keep exactly one of two Plex Media Server containers active."""

__version__ = "0.3.0"
