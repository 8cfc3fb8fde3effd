"""Data models and type definitions"""
from typing import List, Optional
from pydantic import BaseModel


class GalleryItem(BaseModel):
    name: str
    image: str  # data URI or base64 payload


class VerifyRequest(BaseModel):
    capturedImage: str
    referenceImage: str


class IdentifyRequest(BaseModel):
    capturedImage: str
    gallery: Optional[List[GalleryItem]] = None


class VerificationResponse(BaseModel):
    match: bool
    similarity: float
    distance: Optional[float] = None  # null when nothing could be compared
    matchedIdentity: Optional[str] = None
    result: str
    analysis: str


class HealthResponse(BaseModel):
    status: str
    modelLoaded: bool
    galleryEntries: int
