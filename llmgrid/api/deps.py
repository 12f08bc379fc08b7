"""API 依赖"""

from fastapi import Request

from llmgrid.services.sheet import SheetSession


def get_session(request: Request) -> SheetSession:
    """获取应用启动时创建的表格会话"""
    return request.app.state.session
