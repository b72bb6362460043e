"""
Doctor Verification Endpoints
License submission and review
"""

import logging
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_async_session
from app.core.auth import AuthSession, get_auth_session
from app.core.error_handling import NotFoundException, ValidationException
from app.middleware.permissions import require_doctor
from app.models import DoctorVerification, VerificationStatus
from app.schemas.verification import VerificationDecision, VerificationResponse
from app.services.storage_service import StorageService, get_storage_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/verifications", tags=["Doctor Verifications"])

MAX_LICENSE_IMAGE_BYTES = 10 * 1024 * 1024


@router.post("", response_model=VerificationResponse, status_code=status.HTTP_201_CREATED)
async def submit_verification(
    doctor_name: str = Form(..., min_length=1, max_length=200),
    license_number: str = Form(..., min_length=1, max_length=100),
    license_image: UploadFile = File(...),
    auth: AuthSession = Depends(get_auth_session),
    db: AsyncSession = Depends(get_async_session),
    storage: StorageService = Depends(get_storage_service),
):
    """Upload a license image and open a pending verification for the caller"""
    content = await license_image.read()
    if not content:
        raise ValidationException("License image is empty")
    if len(content) > MAX_LICENSE_IMAGE_BYTES:
        raise ValidationException("License image is too large", details={"max_bytes": MAX_LICENSE_IMAGE_BYTES})
    
    key = storage.license_key(auth.user_id, license_image.filename)
    url = await storage.upload(key, content, content_type=license_image.content_type)
    
    verification = DoctorVerification(
        user_id=auth.user_id,
        doctor_name=doctor_name,
        license_number=license_number,
        license_image_url=url,
        status=VerificationStatus.PENDING,
    )
    db.add(verification)
    await db.commit()
    await db.refresh(verification)
    logger.info(f"Verification {verification.id} submitted by user {auth.user_id}")
    return verification


@router.get("", response_model=List[VerificationResponse])
async def list_verifications(
    auth: AuthSession = Depends(require_doctor),
    db: AsyncSession = Depends(get_async_session)
):
    # TODO: restrict review to an administrator role once one exists; any doctor can review today
    result = await db.execute(
        select(DoctorVerification).order_by(desc(DoctorVerification.created_at), desc(DoctorVerification.id))
    )
    return result.scalars().all()


@router.get("/me", response_model=List[VerificationResponse])
async def my_verifications(
    auth: AuthSession = Depends(get_auth_session),
    db: AsyncSession = Depends(get_async_session)
):
    result = await db.execute(
        select(DoctorVerification)
        .where(DoctorVerification.user_id == auth.user_id)
        .order_by(desc(DoctorVerification.created_at), desc(DoctorVerification.id))
    )
    return result.scalars().all()


@router.patch("/{verification_id}", response_model=VerificationResponse)
async def decide_verification(
    verification_id: int,
    body: VerificationDecision,
    auth: AuthSession = Depends(require_doctor),
    db: AsyncSession = Depends(get_async_session)
):
    verification = await db.get(DoctorVerification, verification_id)
    if verification is None:
        raise NotFoundException("Verification not found", details={"verification_id": verification_id})
    
    verification.status = body.status
    verification.verified_by = auth.user_id
    verification.verified_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(verification)
    logger.info(f"Verification {verification_id} {body.status.value} by user {auth.user_id}")
    return verification
