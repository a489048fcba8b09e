"""Data management layer: schemas and the verification store."""

from truthcast.data_management.verification_store import VerificationStore

__all__ = ["VerificationStore"]
