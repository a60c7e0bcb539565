"""
Sharelink

Ephemeral file-sharing backend: short-lived share links, owner-scoped
metadata with a Redis primary and a local fallback store, and blob storage
on Google Cloud Storage or the local filesystem.
"""

__version__ = "0.1.0"
