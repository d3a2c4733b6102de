"""Application services composed from the registries."""

from courier.services.dispatch import DispatchService, EarningsSummary
from courier.services.documents import DocumentStorage, LocalDocumentStorage, decode_document
from courier.services.notifications import EmailMessage, NotificationService
from courier.services.otp import OtpService
from courier.services.registration import Registration, RegistrationService
from courier.services.verification import DocumentSubmission, VerificationService

__all__ = [
    "DispatchService",
    "DocumentStorage",
    "DocumentSubmission",
    "EarningsSummary",
    "EmailMessage",
    "LocalDocumentStorage",
    "NotificationService",
    "OtpService",
    "Registration",
    "RegistrationService",
    "VerificationService",
    "decode_document",
]
