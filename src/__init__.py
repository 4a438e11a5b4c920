"""postdesk — owner-scoped post management against a remote store."""

__version__ = "0.1.0"
