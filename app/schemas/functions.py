"""
Request/response bodies for the account-deletion and license-OCR handlers.
Field names are camelCase to match the existing client contract.
"""
from typing import Optional
from pydantic import BaseModel, Field


class DeleteUserResponse(BaseModel):
    success: bool
    message: str


class LicenseOcrRequest(BaseModel):
    imageBase64: str = Field(..., min_length=1, description="Data URL or base64 image")


class LicenseOcrResponse(BaseModel):
    doctorName: Optional[str] = None
    licenseNumber: Optional[str] = None
