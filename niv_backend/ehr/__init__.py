"""PointClickCare EHR integration."""
from .credential_cache import CachedCredential, CredentialCache, CredentialExchangeError
from .error_classifier import classify_error
from .patient_source import PatientSource
from .pcc_client import PccApiClient, get_pcc_client
from .pcc_patient_source import PccPatientSource

__all__ = [
    "CachedCredential",
    "CredentialCache",
    "CredentialExchangeError",
    "classify_error",
    "PatientSource",
    "PccApiClient",
    "get_pcc_client",
    "PccPatientSource",
]
