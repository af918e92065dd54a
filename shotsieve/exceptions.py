"""
Exception hierarchy for ShotSieve.

Per-asset conditions (ExtractionFailed, AssetUnavailable) are recorded on the
asset and never abort a scan. Capability conditions only disable enrichment.
PersistenceFailure and MigrationFailure end the scan session.
"""


class ShotSieveError(Exception):
    """Base class for all ShotSieve errors."""
    pass


class ExtractionFailed(ShotSieveError):
    """Image could not be read, decoded or sampled."""
    pass


class AssetUnavailable(ShotSieveError):
    """The library could not resolve a readable local file for an asset."""
    pass


class CapabilityUnavailable(ShotSieveError):
    """The optional enrichment capability is missing or has been disabled."""
    pass


class CapabilityTimeout(ShotSieveError):
    """An enrichment call did not finish within its time budget."""
    pass


class PersistenceFailure(ShotSieveError):
    """A database write failed and its transaction was rolled back."""
    pass


class MigrationFailure(ShotSieveError):
    """The database schema could not be brought to the current version."""
    pass


class LabelDecodeError(ShotSieveError):
    """A stored label blob does not match any known serialization version."""
    pass


__all__ = [
    'ShotSieveError',
    'ExtractionFailed',
    'AssetUnavailable',
    'CapabilityUnavailable',
    'CapabilityTimeout',
    'PersistenceFailure',
    'MigrationFailure',
    'LabelDecodeError',
]
