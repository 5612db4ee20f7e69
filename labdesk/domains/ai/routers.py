# labdesk/domains/ai/routers.py

"""
'ai' 도메인의 API 엔드포인트를 정의하는 모듈입니다.
서버리스 함수 호출 오류는 502 Bad Gateway로 응답합니다.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from labdesk.core import dependencies as deps
from labdesk.domains.usr.models import User as UsrUser

from . import client as ai_client
from . import schemas as ai_schemas

router = APIRouter(
    tags=["AI Tools (AI 도구)"],
    responses={502: {"description": "AI service error"}},
)


@router.post("/test-configuration", response_model=ai_schemas.TestConfigurationResponse, summary="AI 검사 구성 제안")
async def suggest_test_configuration(
    request_in: ai_schemas.TestConfigurationRequest,
    client: ai_client.FunctionsClient = Depends(ai_client.get_functions_client),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    try:
        return await client.suggest_test_configuration(request_in)
    except ai_client.AIServiceError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


@router.post("/document-analysis", response_model=ai_schemas.DocumentAnalysisResponse, summary="AI 문서 분석")
async def analyze_document(
    request_in: ai_schemas.DocumentAnalysisRequest,
    client: ai_client.FunctionsClient = Depends(ai_client.get_functions_client),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    try:
        return await client.analyze_document(request_in)
    except ai_client.AIServiceError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


@router.get("/availability", response_model=ai_schemas.AvailabilityRead, summary="AI 서비스 가용성 확인")
async def check_availability(
    client: ai_client.FunctionsClient = Depends(ai_client.get_functions_client),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await client.check_availability()
