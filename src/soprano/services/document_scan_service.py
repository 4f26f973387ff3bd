"""Fill address and PAN fields from a photographed document."""

import base64
import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol

from langchain_core.language_models import BaseLanguageModel
from langchain_core.messages import HumanMessage
from pydantic import BaseModel, ConfigDict, Field

from soprano.core.exceptions import (
    DocumentCaptureError,
    DocumentExtractionError,
    DocumentScanError,
    UserCancelledError,
)
from soprano.core.logger import get_logger
from soprano.forms.schema import DocumentType

logger = get_logger(__name__)

ADDRESS_PROMPT = """Analyze this Indian address document (Aadhaar card, utility bill, etc.) and extract the address details.
Return ONLY a JSON object (no markdown, no code blocks) with these fields:
{
  "addressLine1": "house/flat number and building name",
  "addressLine2": "street, area, locality",
  "city": "city name",
  "state": "Indian state name",
  "pincode": "6-digit Indian pincode"
}

Rules:
- Extract the complete Indian address from the document
- If any field is not found, use empty string ""
- Ensure pincode is exactly 6 digits (Indian postal code format)
- State should be an Indian state name (e.g., Maharashtra, Karnataka, Tamil Nadu)
- Return ONLY the JSON object, nothing else"""

PAN_PROMPT = """Analyze this Indian PAN card and extract the PAN number.
Return ONLY a JSON object (no markdown, no code blocks) with this field:
{
  "panNumber": "10-character PAN number in format ABCDE1234F"
}

Rules:
- PAN (Permanent Account Number) is an Indian tax identifier
- PAN format is 5 letters, 4 digits, 1 letter (e.g., ABCDE1234F)
- Return in uppercase
- If not found or invalid, use empty string ""
- Return ONLY the JSON object, nothing else"""

DOCUMENT_PROMPTS = {
    DocumentType.ADDRESS: ADDRESS_PROMPT,
    DocumentType.PAN: PAN_PROMPT,
}


class DocumentData(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    address_line1: str = Field(default="", alias="addressLine1")
    address_line2: str = Field(default="", alias="addressLine2")
    city: str = Field(default="", alias="city")
    state: str = Field(default="", alias="state")
    pincode: str = Field(default="", alias="pincode")
    pan_number: str = Field(default="", alias="panNumber")


@dataclass(frozen=True)
class CapturedImage:
    data: bytes
    mime_type: str = "image/jpeg"


class DocumentExtractor(Protocol):
    async def capture_and_extract(self, document_type: DocumentType) -> DocumentData: ...


def parse_document_response(response_text: str, document_type: DocumentType) -> DocumentData:
    cleaned = response_text.strip().replace("```json", "").replace("```", "").strip()
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.error(f"Document parse error: {e}. Response text: {response_text}")
        raise DocumentExtractionError("Failed to parse document data from response") from e

    if not isinstance(parsed, dict):
        raise DocumentExtractionError("Failed to parse document data from response")

    # Models sometimes answer null for fields they could not read
    parsed = {k: str(v) if v else "" for k, v in parsed.items()}
    data = DocumentData.model_validate(parsed)
    if document_type == DocumentType.PAN:
        return DocumentData(pan_number=data.pan_number)
    return data.model_copy(update={"pan_number": ""})


def document_to_field_value(data: DocumentData, document_type: DocumentType) -> Optional[str]:
    """Shape extracted data the way the field expects it, or None when empty."""
    if document_type == DocumentType.PAN:
        return data.pan_number.strip().upper() or None

    parts = (data.address_line1, data.address_line2, data.city, data.state, data.pincode)
    address = ", ".join(p.strip() for p in parts if p and p.strip())
    return address or None


class VisionDocumentExtractor:
    """Reads a document photo with a multimodal chat model."""

    def __init__(
        self,
        chat_model: BaseLanguageModel,
        capture_image: Callable[[], Awaitable[Optional[CapturedImage]]],
    ):
        self._chat_model = chat_model
        self._capture_image = capture_image

    async def capture_and_extract(self, document_type: DocumentType) -> DocumentData:
        try:
            image = await self._capture_image()
        except Exception as e:
            logger.error(f"Capture error: {e}")
            raise DocumentCaptureError(f"Failed to capture document: {str(e)}") from e

        if image is None:
            raise UserCancelledError("No image captured")

        encoded = base64.b64encode(image.data).decode("ascii")
        message = HumanMessage(
            content=[
                {"type": "image_url", "image_url": {"url": f"data:{image.mime_type};base64,{encoded}"}},
                {"type": "text", "text": DOCUMENT_PROMPTS[document_type]},
            ]
        )

        try:
            response = await self._chat_model.ainvoke([message])
        except Exception as e:
            logger.error(f"Extraction error: {e}")
            raise DocumentExtractionError(f"Failed to extract document data: {str(e)}") from e

        response_text = response.content if hasattr(response, "content") else str(response)
        if not isinstance(response_text, str) or not response_text.strip():
            raise DocumentExtractionError("No response from the vision model")

        return parse_document_response(response_text, document_type)


class DocumentScanService:
    def __init__(self, extractor: DocumentExtractor):
        self._extractor = extractor

    async def scan(self, document_type: DocumentType) -> DocumentData:
        logger.info(f"Scanning {document_type.value} document")
        try:
            data = await self._extractor.capture_and_extract(document_type)
        except DocumentScanError:
            raise
        except Exception as e:
            logger.error(f"Document scan error: {e}")
            raise DocumentExtractionError(f"Failed to scan document: {str(e)}") from e

        logger.info(f"Extracted {document_type.value} document data")
        return data

    async def scan_for_field(self, document_type: DocumentType) -> Any:
        data = await self.scan(document_type)
        value = document_to_field_value(data, document_type)
        if value is None:
            raise DocumentExtractionError(f"Nothing readable found on the {document_type.value} document")
        return value
