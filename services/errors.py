"""
Service-layer exceptions
"""


class PillWatchError(Exception):
    """Base class for errors raised by PillWatch services"""


class StoreError(PillWatchError):
    """The document store could not be read or written"""


class PatientNotFoundError(PillWatchError):
    """No patient settings exist for the requested id"""

    def __init__(self, patient_id: str):
        super().__init__(f"Patient {patient_id} not found")
        self.patient_id = patient_id


class ValidationError(PillWatchError, ValueError):
    """Caregiver input rejected at the write boundary"""
