"""Pydantic response schemas for the FastAPI endpoints."""

from pydantic import BaseModel


class ResolutionResponse(BaseModel):
    width: int
    height: int
    adequate: bool
    recommended: bool


class BlurResponse(BaseModel):
    variance: float
    is_blurry: bool
    adequate: bool


class BrightnessResponse(BaseModel):
    average: float
    adequate: bool
    issue: str | None = None


class ContrastResponse(BaseModel):
    value: float
    adequate: bool


class TextSizeResponse(BaseModel):
    estimated_dpi: float
    adequate: bool


class QualityResponse(BaseModel):
    """Response schema for an image quality check."""

    resolution: ResolutionResponse
    blur: BlurResponse
    brightness: BrightnessResponse
    contrast: ContrastResponse
    text_size: TextSizeResponse
    overall: str
    issues: list[str]


class BillFieldsResponse(BaseModel):
    bill_no: str = ""
    date: str = ""
    customer: str = ""
    gst: str = ""
    total: str = ""


class FieldConfidenceResponse(BaseModel):
    confidence: float
    value: str
    needs_review: bool
    status: str


class ConfidenceSummaryResponse(BaseModel):
    average: float
    low_confidence_fields: list[str]
    needs_review: list[str]
    total_fields: int


class ScanResponse(BaseModel):
    """Response schema for a scan request."""

    success: bool
    scan_id: str
    mode: str
    fields: BillFieldsResponse
    field_confidences: dict[str, FieldConfidenceResponse]
    overall_confidence: float
    cancelled: bool
    pass_count: int
    quality: QualityResponse | None = None
    summary: ConfidenceSummaryResponse | None = None
    template: str | None = None
    processing_time_ms: float


class CancelResponse(BaseModel):
    cancel_requested: bool


class HealthResponse(BaseModel):
    """Response schema for the health check endpoint."""

    status: str
    version: str
    tesseract_available: bool
