from typing import List, Optional
from pydantic import BaseModel


class ModelStatusResponse(BaseModel):
    """DTO for one model cache entry"""
    key: str
    display_name: str
    url: Optional[str] = None
    cached: bool
    size_bytes: Optional[int] = None
    size_label: Optional[str] = None


class ModelListResponse(BaseModel):
    """DTO for the model registry with cache status"""
    models: List[ModelStatusResponse]
    total_size_bytes: int
    total_size_label: str


class ModelDownloadResponse(BaseModel):
    """DTO for a completed model download"""
    key: str
    size_bytes: int
    size_label: str
    progress: List[int] = []


class ModelDownloadAllResponse(BaseModel):
    """DTO for a bulk prefetch"""
    completed: List[str]
    total_size_bytes: int
    total_size_label: str
