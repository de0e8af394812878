"""Local-first library storage for a podcast client.

Provides:
- SQLAlchemy-backed entity store (sessions, blobs, subscriptions, favorites,
  settings, folders, tracks, track subtitles)
- Cascading deletion and local file ingest
- Retention pruning of playback history
- Vault export/import with integrity verification
"""

__version__ = "0.1.0"
