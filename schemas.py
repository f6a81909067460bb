"""
Pydantic schemas for the Calorie Vision API

- User -> row of the "users" table (see database.py)
- FoodAnalysisResult -> structured answer extracted from the vision model
- SignupRequest / LoginRequest -> JSON request bodies
"""
import math

from pydantic import BaseModel, Field, field_validator
from typing import Any, Optional, List, Union

UNCLEAR_FOOD = "tidak_jelas"


class User(BaseModel):
    id: Optional[int] = Field(None, description="Surrogate key generated by the store")
    name: str = Field(..., description="Full name")
    email: str = Field(..., description="Unique email address (case-sensitive)")
    password: str = Field(..., description="BCrypt password hash")

    def public(self) -> "PublicUser":
        return PublicUser(id=self.id, name=self.name, email=self.email)


class PublicUser(BaseModel):
    id: int
    name: str
    email: str


class FoodAnalysisResult(BaseModel):
    nama_makanan: str = Field(..., description=f"Detected food name, or '{UNCLEAR_FOOD}' if unclear")
    jumlah_kalori: Union[int, float] = Field(..., description="Estimated calories (kcal)")
    bahan_utama: List[str] = Field(..., min_length=1, description="Main ingredients, or an image description when unclear")

    @field_validator("bahan_utama", mode="before")
    @classmethod
    def _wrap_description(cls, v):
        # The model may answer with a plain description string for unclear images
        if isinstance(v, str):
            return [v]
        return v

    @field_validator("jumlah_kalori", mode="before")
    @classmethod
    def _reject_bool(cls, v):
        if isinstance(v, bool):
            raise ValueError("must be a number, not a boolean")
        return v

    @field_validator("jumlah_kalori")
    @classmethod
    def _finite_non_negative(cls, v):
        if isinstance(v, float) and not math.isfinite(v):
            raise ValueError("must be a finite number")
        if v < 0:
            raise ValueError("must be greater than or equal to 0")
        return v

    @property
    def is_unclear(self) -> bool:
        return self.nama_makanan == UNCLEAR_FOOD


class SignupRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class AnalysisResponse(BaseModel):
    success: bool = True
    data: FoodAnalysisResult


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class LoginResponse(MessageResponse):
    user: PublicUser


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    details: Optional[str] = None
    raw_response: Optional[Any] = None
