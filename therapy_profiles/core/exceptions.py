"""Base exceptions shared by the profile services."""


class ProfileError(Exception):
    """Base exception for therapy profile errors."""

    pass
