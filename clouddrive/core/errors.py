"""Custom exceptions used across clouddrive."""


class CloudDriveError(Exception):
    """Base error for the application."""


class ConfigError(CloudDriveError):
    """Configuration related error."""
