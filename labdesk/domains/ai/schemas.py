# labdesk/domains/ai/schemas.py

"""
'ai' 도메인의 Pydantic 스키마를 정의하는 모듈입니다.
요청 본문은 서버리스 함수가 기대하는 camelCase 키로 직렬화됩니다.
"""

from typing import Any, Dict, List, Literal, Optional
from sqlmodel import Field, SQLModel


class TestConfigurationRequest(SQLModel):
    test_name: str = Field(..., min_length=1, alias="testName")
    description: Optional[str] = None
    lab_context: Optional[str] = Field(None, alias="labContext")
    existing_tests: List[str] = Field(default_factory=list, alias="existingTests")

    model_config = {"populate_by_name": True}


class TestConfigurationResponse(SQLModel):
    test_group: Dict[str, Any]
    analytes: List[Dict[str, Any]] = []
    test_group_analytes: List[Dict[str, Any]] = []
    confidence: float = 0
    reasoning: str = ""
    inserted: bool = False


class DocumentAnalysisRequest(SQLModel):
    document_type: Literal["pdf", "image", "color_card"] = Field(..., alias="documentType")
    content: str = Field(..., min_length=1, description="Base64 또는 텍스트 내용")
    test_context: Optional[Dict[str, Any]] = Field(None, alias="testContext")
    custom_prompt: Optional[str] = Field(None, alias="customPrompt")

    model_config = {"populate_by_name": True}


class DocumentAnalysisResponse(SQLModel):
    extracted_data: Dict[str, Any] = Field(default_factory=dict, alias="extractedData")
    confidence: float = 0
    processing_type: Optional[str] = Field(None, alias="processingType")
    suggestions: List[str] = []
    errors: List[str] = []

    model_config = {"populate_by_name": True}


class AvailabilityRead(SQLModel):
    available: bool
    message: Optional[str] = None
