# labdesk/domains/__init__.py

"""
업무 화면 단위 도메인 패키지 모음입니다.

각 도메인은 `models.py`(ORM), `schemas.py`(요청/응답 DTO),
`crud.py`(비동기 데이터 접근), `routers.py`(API 엔드포인트)로 구성됩니다.
"""
