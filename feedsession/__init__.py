"""Session and load orchestration for a Mastodon feed client.

Sits between a host UI and two opaque collaborators: the external feed-ranking
engine and the user's Mastodon-compatible home server.
"""

__version__ = "0.4.0"
