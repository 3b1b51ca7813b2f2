"""Exceptions raised by the telescope agent."""


class TelescopeError(Exception):
    """Base class for all agent errors."""


class ConfigError(TelescopeError):
    """Options could not be normalised into a usable configuration."""


class BrowserLaunchError(TelescopeError):
    """The browser, its context or its first page could not be created."""


class InspectionChannelError(TelescopeError):
    """The DevTools session of a Chromium browser could not be established."""


class TelemetryNotSealed(TelescopeError):
    """Collected telemetry was read while the session could still write to it."""


class UploadError(TelescopeError):
    """Uploading a zipped result set failed."""

    def __init__(self, message, test_id=None):
        super().__init__(message)
        self.test_id = test_id


class TelemetrySealed(TelescopeError):
    """An event arrived after the session was closed and telemetry was sealed."""
