"""Exception taxonomy for broker provisioning."""

from __future__ import annotations


class EmbeddedKafkaError(Exception):
    """Base class for every error raised while provisioning a test broker."""


class ConfigurationError(EmbeddedKafkaError):
    """Raised when the broker configuration cannot be resolved.

    Covers malformed inline property entries, missing or unreadable property
    resources and invalid broker specs. The message names the offending
    source (entry text or resource descriptor).
    """


class ProvisioningError(EmbeddedKafkaError):
    """Raised when a configured broker fails to start."""


class RegistrationError(EmbeddedKafkaError):
    """Raised when a context binding name is already taken."""
