"""处理配置接口"""

from fastapi import APIRouter, Depends

from llmgrid.api.deps import get_session
from llmgrid.schemas.response import ApiResponse, ok
from llmgrid.schemas.sheet import UpdateSettingsParams
from llmgrid.services.sheet import SheetSession

router = APIRouter(prefix="/settings", tags=["配置"])


@router.get("", response_model=ApiResponse, summary="获取处理配置")
async def get_settings(session: SheetSession = Depends(get_session)):
    """API Key 只返回是否已配置"""
    return ok(session.settings.public_dict())


@router.patch("", response_model=ApiResponse, summary="修改处理配置")
async def update_settings(params: UpdateSettingsParams, session: SheetSession = Depends(get_session)):
    changes = params.model_dump(exclude_unset=True)
    settings = session.update_settings(**changes)
    return ok(settings.public_dict())
