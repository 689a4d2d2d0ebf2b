"""Service modules - Business logic layer"""
from .notification_service import NotificationService
from .form_service import FormService
from .request_service import RequestService

__all__ = [
    "NotificationService",
    "FormService",
    "RequestService",
]
