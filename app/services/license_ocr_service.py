"""
License OCR
Reads the doctor's name and license number off a license photo with an
OpenAI vision model.
"""

import json
import logging
import re
from typing import Dict, Optional

from openai import AsyncOpenAI, OpenAIError

from config import settings

logger = logging.getLogger(__name__)

OCR_PROMPT = (
    "Extract the doctor's name and license number from this medical license image. "
    'Return only a JSON object with two fields: "doctorName" and "licenseNumber". '
    "If you cannot find the information, use null for that field."
)

FENCED_JSON = re.compile(r"```(?:json)?\s*\n([\s\S]*?)\n```")


class LicenseOcrError(Exception):
    pass


def parse_ocr_content(content: str) -> Dict[str, Optional[str]]:
    """Parse the model reply, which may wrap its JSON in a fenced code block"""
    match = FENCED_JSON.search(content)
    raw = match.group(1) if match else content
    try:
        extracted = json.loads(raw)
    except json.JSONDecodeError:
        logger.error(f"Failed to parse OCR response: {content}")
        raise LicenseOcrError("Failed to parse extracted data")
    if not isinstance(extracted, dict):
        raise LicenseOcrError("Failed to parse extracted data")
    return {
        "doctorName": extracted.get("doctorName") or None,
        "licenseNumber": extracted.get("licenseNumber") or None,
    }


class LicenseOcrService:
    def __init__(self, client: Optional[AsyncOpenAI] = None):
        self.client = client
        if self.client is None and settings.OPENAI_API_KEY:
            self.client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
    
    async def extract(self, image_data_url: str) -> Dict[str, Optional[str]]:
        if self.client is None:
            raise LicenseOcrError("OPENAI_API_KEY is not configured")
        
        try:
            response = await self.client.chat.completions.create(
                model=settings.OCR_MODEL,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": OCR_PROMPT},
                            {"type": "image_url", "image_url": {"url": image_data_url}},
                        ],
                    }
                ],
            )
        except OpenAIError as e:
            logger.error(f"Vision model error: {e}")
            raise LicenseOcrError("Failed to process image with AI") from e
        
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise LicenseOcrError("No content received from AI")
        
        return parse_ocr_content(content)


license_ocr_service: Optional[LicenseOcrService] = None


def get_license_ocr_service() -> LicenseOcrService:
    global license_ocr_service
    if license_ocr_service is None:
        license_ocr_service = LicenseOcrService()
    return license_ocr_service
