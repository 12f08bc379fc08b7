"""LLM Grid API 服务入口"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from dotenv import load_dotenv

from llmgrid.api.main import api_router
from llmgrid.core.config import settings, setup_logging
from llmgrid.engine.errors import ExternalApiError, ValidationError
from llmgrid.schemas.response import ApiResponse
from llmgrid.services.sheet import SheetSession

load_dotenv()
setup_logging(settings.LOG_LEVEL)

logger = logging.getLogger(__name__)


OPENAPI_DESCRIPTION = """

🚀 **用大语言模型批量处理表格数据**

## 功能特性

- ✏️ **表格编辑**: 增删行列、编辑单元格，支持撤销/重做
- 🔍 **智能筛选**: 文本、数字、日期、布尔条件组合筛选
- 🤖 **列任务**: 为列设置提示词，逐行调用 Gemini / ChatGPT / Mistral 转换内容
- ⏱️ **限流**: 所有 AI 服务共用每分钟请求上限，支持行间延迟与取消
- 📤 **导入导出**: 支持 Excel / CSV，以及从 REST 接口导入、推送到 REST 接口

"""


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期：启动时创建会话，关闭时停止所有列任务"""
    session = SheetSession.from_settings(settings)
    app.state.session = session
    logger.info(f"会话已创建: {session!r}")
    yield
    session.cancel_all()
    await session.wait_for_jobs()


app = FastAPI(
    title="LLM Grid API",
    description=OPENAPI_DESCRIPTION,
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """统一处理 HTTPException，返回统一格式的响应"""
    return JSONResponse(
        status_code=exc.status_code,
        content=ApiResponse(
            code=exc.status_code,
            data=None,
            msg=exc.detail
        ).model_dump()
    )


@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError):
    """参数校验失败，返回 400"""
    return JSONResponse(
        status_code=400,
        content=ApiResponse(
            code=400,
            data=None,
            msg=str(exc)
        ).model_dump()
    )


@app.exception_handler(ExternalApiError)
async def external_api_exception_handler(request: Request, exc: ExternalApiError):
    """外部接口请求失败，返回 502"""
    logger.warning(f"外部接口错误: {exc}")
    return JSONResponse(
        status_code=502,
        content=ApiResponse(
            code=502,
            data=None,
            msg=str(exc)
        ).model_dump()
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """统一处理其他异常，返回统一格式的响应"""
    logger.exception(f"未处理的异常: {exc}")
    return JSONResponse(
        status_code=500,
        content=ApiResponse(
            code=500,
            data=None,
            msg=f"服务器内部错误: {str(exc)}"
        ).model_dump()
    )


@app.get("/", include_in_schema=False)
async def root():
    """根路径重定向到 API 文档"""
    return RedirectResponse(url="/docs")


app.include_router(api_router)
