"""HR Core — leave entitlements, leave workflow and approval routing."""

__version__ = "1.0.0"
