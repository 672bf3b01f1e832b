"""Mock services for development and testing."""
from .ehr_mock import MOCK_ORG_UUID, MockPatientSource, default_mock_patients

__all__ = [
    "MOCK_ORG_UUID",
    "MockPatientSource",
    "default_mock_patients",
]
