"""
Account-deletion and license-OCR handlers
These answer with a flat {"error": ...} body, which the mobile client
expects, instead of the API's standard error envelope.
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_async_session
from app.core.auth import user_from_token
from app.core.error_handling import AuthFailed
from app.models import User
from app.schemas.functions import DeleteUserResponse, LicenseOcrRequest, LicenseOcrResponse
from app.services.account_service import delete_user_account
from app.services.license_ocr_service import LicenseOcrError, LicenseOcrService, get_license_ocr_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions", tags=["Functions"])

OCR_EMPTY_RESULT = {"doctorName": None, "licenseNumber": None}


async def _bearer_user(request: Request, db: AsyncSession) -> User:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise AuthFailed("Missing authorization header")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise AuthFailed("Invalid authorization header")
    try:
        return await user_from_token(db, token)
    except AuthFailed:
        raise AuthFailed("Invalid token or user not found")


@router.post("/delete-user", response_model=DeleteUserResponse)
async def delete_user(
    request: Request,
    db: AsyncSession = Depends(get_async_session)
):
    """Delete the caller's account and every record scoped to their role"""
    try:
        user = await _bearer_user(request, db)
    except AuthFailed as e:
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"error": e.message})
    
    try:
        await delete_user_account(db, user.id)
    except Exception as e:
        logger.error(f"Error deleting user {user.id}: {e}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to delete user account"},
        )
    
    return DeleteUserResponse(success=True, message="Account deleted successfully")


@router.post("/extract-license-ocr", response_model=LicenseOcrResponse)
async def extract_license_ocr(
    body: LicenseOcrRequest,
    request: Request,
    db: AsyncSession = Depends(get_async_session),
    ocr: LicenseOcrService = Depends(get_license_ocr_service),
):
    """Read doctor name and license number from a license photo"""
    try:
        await _bearer_user(request, db)
    except AuthFailed as e:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": e.message, **OCR_EMPTY_RESULT},
        )
    
    try:
        extracted = await ocr.extract(body.imageBase64)
    except LicenseOcrError as e:
        logger.error(f"Error in extract-license-ocr: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(e), **OCR_EMPTY_RESULT},
        )
    
    return LicenseOcrResponse(**extracted)
