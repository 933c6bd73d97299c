"""Sync Outlook add-in installations from Entra ID group membership."""

__version__ = "0.1.0"
