"""
Services Module
Business logic layer for the PillWatch application
"""

from services.errors import PillWatchError, StoreError, PatientNotFoundError, ValidationError
from services.store import DocumentStore, StoreChange, document_store
from services.patient_service import PatientService, patient_service
from services.adherence_service import AdherenceService, AdherenceSummary, adherence_service


__all__ = [
    # Errors
    "PillWatchError",
    "StoreError",
    "PatientNotFoundError",
    "ValidationError",
    # Service classes
    "DocumentStore",
    "StoreChange",
    "PatientService",
    "AdherenceService",
    "AdherenceSummary",
    # Singleton instances
    "document_store",
    "patient_service",
    "adherence_service",
]
