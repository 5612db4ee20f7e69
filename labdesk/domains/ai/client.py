# labdesk/domains/ai/client.py

"""
서버리스 함수 호출 클라이언트입니다.

응답은 `{"success": bool, "data": ..., "error": str}` 형태의 봉투(envelope)이며,
전송 오류, HTTP 오류, `success: false` 응답은 모두 AIServiceError로 변환됩니다.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from labdesk.core.config import settings
from . import schemas as ai_schemas

logger = logging.getLogger(__name__)

TEST_CONFIGURATOR_FUNCTION = "ai-test-configurator"
DOCUMENT_PROCESSOR_FUNCTION = "ai-document-processor"


class AIServiceError(Exception):
    """서버리스 함수 호출 실패."""


class FunctionsClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.FUNCTIONS_BASE_URL).rstrip("/")
        if api_key is None and settings.FUNCTIONS_API_KEY is not None:
            api_key = settings.FUNCTIONS_API_KEY.get_secret_value()
        self.api_key = api_key
        self.timeout = timeout if timeout is not None else settings.FUNCTIONS_TIMEOUT
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def invoke(self, function_name: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """함수를 호출하고 봉투 전체를 반환합니다."""
        url = f"{self.base_url}/{function_name}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, json=body, headers=self._headers())
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Function '%s' returned HTTP %s", function_name, e.response.status_code)
            raise AIServiceError(f"Edge function error: HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error("Function '%s' request failed: %s", function_name, e)
            raise AIServiceError(f"Edge function error: {e}") from e
        except ValueError as e:
            raise AIServiceError("Edge function returned an invalid JSON body") from e

        if not isinstance(payload, dict) or not payload:
            raise AIServiceError("No data returned from Edge Function")
        if not payload.get("success"):
            message = payload.get("error") or "Unknown error from AI service"
            logger.warning("Function '%s' reported failure: %s", function_name, message)
            raise AIServiceError(message)
        return payload

    async def suggest_test_configuration(
        self, request: ai_schemas.TestConfigurationRequest
    ) -> ai_schemas.TestConfigurationResponse:
        payload = await self.invoke(
            TEST_CONFIGURATOR_FUNCTION, request.model_dump(by_alias=True, exclude_none=True)
        )
        data = dict(payload.get("data") or {})
        data["inserted"] = bool(payload.get("inserted", False))
        try:
            return ai_schemas.TestConfigurationResponse.model_validate(data)
        except ValueError as e:
            raise AIServiceError(f"Failed to generate test configuration: {e}") from e

    async def analyze_document(
        self, request: ai_schemas.DocumentAnalysisRequest
    ) -> ai_schemas.DocumentAnalysisResponse:
        payload = await self.invoke(
            DOCUMENT_PROCESSOR_FUNCTION, request.model_dump(by_alias=True, exclude_none=True)
        )
        try:
            return ai_schemas.DocumentAnalysisResponse.model_validate(payload.get("data") or {})
        except ValueError as e:
            raise AIServiceError(f"Failed to analyze document: {e}") from e

    async def check_availability(self) -> ai_schemas.AvailabilityRead:
        """간단한 구성 요청으로 연결 상태를 확인합니다."""
        probe = ai_schemas.TestConfigurationRequest(test_name="Test Connectivity", description="Connection test")
        try:
            await self.suggest_test_configuration(probe)
        except AIServiceError as e:
            return ai_schemas.AvailabilityRead(available=False, message=str(e))
        return ai_schemas.AvailabilityRead(available=True)


def get_functions_client() -> FunctionsClient:
    return FunctionsClient()
