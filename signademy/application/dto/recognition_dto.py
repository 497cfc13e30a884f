from typing import List, Optional
from pydantic import BaseModel


class LoadModelRequest(BaseModel):
    """DTO for switching the session to a model category"""
    category: str
    custom_url: Optional[str] = None


class LoadModelResponse(BaseModel):
    """DTO for a loaded model"""
    category: str
    display_name: str
    running_mode: str
    progress: List[int]


class DetectionResponse(BaseModel):
    """DTO for an accepted detection"""
    label: str
    confidence_percent: float
    timestamp_ms: float
    raw_label: str


class SessionStateResponse(BaseModel):
    """DTO for the gesture session state"""
    category: Optional[str] = None
    ready: bool
    loading: bool
    streaming: bool
    running_mode: Optional[str] = None
    detection: Optional[DetectionResponse] = None
    last_error: Optional[str] = None


class StillRecognitionResponse(BaseModel):
    """DTO for a one-shot image recognition"""
    detected: bool
    message: str
    label: Optional[str] = None
    raw_label: Optional[str] = None
    confidence_percent: float = 0.0
    hands: int = 0
    image_base64: Optional[str] = None
