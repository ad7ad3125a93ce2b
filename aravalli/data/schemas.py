# aravalli/data/schemas.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict


# --- Auth Schemas ---
class UserCreate(BaseModel):
    username: str
    password: str
    name: Optional[str] = None
    dob: Optional[str] = None
    contact: Optional[str] = None
    email: Optional[str] = None


class LoginRequest(BaseModel):
    username: str
    password: str


class LogoutRequest(BaseModel):
    token: Optional[str] = None


class UserPublic(BaseModel):
    id: int
    username: str
    role: str

    model_config = ConfigDict(from_attributes=True)


# --- Analysis Schemas ---
class AnalyzeRequest(BaseModel):
    location: Optional[str] = None
    image: Optional[str] = None


class VerifyRequest(BaseModel):
    correct: bool


class AnalysisRecordSchema(BaseModel):
    id: int
    location_name: str
    timestamp: datetime
    ndvi_score: float
    degradation_status: str
    construction_detected: bool
    nightlight_intensity: float
    is_legal_construction: bool
    user_verified: Optional[bool] = None
    image_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# --- Admin Schemas ---
class SettingsUpdate(BaseModel):
    config: Dict[str, Any]


class PromptRequest(BaseModel):
    prompt: str


class PromptHistorySchema(BaseModel):
    id: int
    prompt: str
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class FilePathRequest(BaseModel):
    path: str


class FileWriteRequest(BaseModel):
    path: str
    content: str


class ProposedChange(BaseModel):
    path: str
    updated: str


class ApplyRequest(BaseModel):
    changes: List[ProposedChange]


# --- Chat ---
class ChatRequest(BaseModel):
    message: str
