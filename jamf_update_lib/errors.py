#!/usr/bin/env python3


class JamfUpdateError(Exception):
    """Base class for every failure that ends a package update run."""


class ApiRequestError(JamfUpdateError):
    """A request to Jamf Pro failed. Carries the HTTP status and the raw body."""

    def __init__(self, message, status_code=None, body=""):
        self.message = message
        self.status_code = status_code
        self.body = body or ""
        super().__init__(message)

    def __str__(self):
        if self.status_code is None:
            if self.body:
                return f"{self.message}: {self.body}"
            return self.message
        return f"{self.message} (HTTP {self.status_code}): {self.body}"


class AuthenticationError(ApiRequestError):
    """The client credentials could not be exchanged for a token."""


class NotFoundError(ApiRequestError):
    """The package does not exist on the server."""


class MetadataUpdateError(ApiRequestError):
    """The package record could not be replaced in-place."""


class UploadError(ApiRequestError):
    """The package file upload failed.

    `retryable` is True when the last attempt failed with a server error and the
    attempt budget ran out, False when the upload was aborted straight away."""

    def __init__(self, message, status_code=None, body="", retryable=False, attempts=1):
        self.retryable = retryable
        self.attempts = attempts
        super().__init__(message, status_code=status_code, body=body)


class PolicyScanError(ApiRequestError):
    """A policy could not be read while scanning for package references."""

    def __init__(self, message, status_code=None, body="", policy_id=None):
        self.policy_id = policy_id
        super().__init__(message, status_code=status_code, body=body)


class ConvergenceTimeoutError(JamfUpdateError):
    """The package digest never changed or appeared within the polling budget."""


class ContentMismatchError(JamfUpdateError):
    """The local file hash does not match the hash reported by the server."""


class ValidationError(JamfUpdateError):
    """The local package file cannot be used."""


class CredentialsError(JamfUpdateError):
    """No usable API client credentials were found or they could not be stored."""
