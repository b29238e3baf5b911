"""User-service logic for a game server: accounts, inventory, equipment, cards, pets and monthly sign-in."""

__version__ = "1.0.0"