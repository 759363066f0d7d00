"""Self-hosted shell script distribution: catalog admin and Caddy route sync."""

__version__ = '0.4.0'
