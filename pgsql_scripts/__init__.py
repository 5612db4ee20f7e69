# pgsql_scripts/__init__.py
"""
Alembic이 관리하는 PostgreSQL 객체(함수, 뷰, 구체화 뷰) 정의 패키지입니다.

주요 파일:
- `functions.py`: pgsql 함수 정의 (오더 상태 일관성 점검)
- `views.py`: pgsql 구체화 뷰 정의 (대시보드 오더 행)

패키지 안의 모든 모듈을 순회하여 alembic_utils의 ReplaceableEntity 객체를
`all_db_objects`에 자동으로 수집합니다. (migrations/env.py에서 사용)
"""

__title__ = "LabDesk Pgsql scripts"
__description__ = "Database functions and views managed by Alembic."
__version__ = "0.1.0"
__all__ = ["all_db_objects"]

import pkgutil
import importlib
import inspect

from alembic_utils.replaceable_entity import ReplaceableEntity

all_db_objects = []

for loader, module_name, is_pkg in pkgutil.iter_modules(__path__):
    module = importlib.import_module(f".{module_name}", __package__)
    for name, obj in inspect.getmembers(module):
        if isinstance(obj, ReplaceableEntity):
            all_db_objects.append(obj)
