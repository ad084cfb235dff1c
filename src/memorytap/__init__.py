"""memorytap: capture voice notes and turn them into organized memories."""

__version__ = "0.1.0"
