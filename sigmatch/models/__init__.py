"""Data models and type definitions"""
from .types import GalleryItem, VerifyRequest, IdentifyRequest, VerificationResponse, HealthResponse

__all__ = [
    'GalleryItem',
    'VerifyRequest',
    'IdentifyRequest',
    'VerificationResponse',
    'HealthResponse'
]
