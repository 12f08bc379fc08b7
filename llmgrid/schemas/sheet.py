"""表格相关的请求模型"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from llmgrid.engine.llm_client import AIProvider
from llmgrid.engine.models import FilterKind, FilterOperator
from llmgrid.engine.prompt import ResponseFormat


class UpdateCellParams(BaseModel):
    """更新单元格请求"""

    value: str = Field(..., description="单元格的新值")


class UpdateColumnParams(BaseModel):
    """更新列请求（只修改传入的字段）"""

    name: Optional[str] = Field(None, description="列名")
    width: Optional[int] = Field(None, gt=0, description="列宽")
    prompt: Optional[str] = Field(None, description="转换提示词")


class ImportParams(BaseModel):
    """导入表格数据请求"""

    headers: List[str] = Field(default_factory=list, description="表头")
    rows: List[List[str]] = Field(default_factory=list, description="行数据")


class FilterParams(BaseModel):
    """添加筛选条件请求"""

    column: int = Field(..., ge=0, description="列索引")
    kind: FilterKind = Field(FilterKind.TEXT, description="筛选类型")
    operator: FilterOperator = Field(FilterOperator.CONTAINS, description="运算符")
    value: str = Field("", description="比较值")
    value2: Optional[str] = Field(None, description="第二个比较值（between）")


class ResponseStructureParams(BaseModel):
    """回复结构"""

    title: bool = True
    description: bool = True
    keywords: bool = False
    categories: bool = False
    summary: bool = False
    analysis: bool = False
    custom: List[str] = Field(default_factory=list)


class UpdateSettingsParams(BaseModel):
    """更新处理配置请求（只修改传入的字段）"""

    ai_provider: Optional[AIProvider] = None
    ai_model: Optional[str] = None
    gemini_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    mistral_api_key: Optional[str] = None
    temperature: Optional[float] = Field(None, ge=0, le=2)
    max_tokens: Optional[int] = Field(None, ge=1, le=4096)
    processing_delay_ms: Optional[int] = Field(None, ge=0)
    rate_limit_per_minute: Optional[int] = Field(None, ge=1)
    auto_save: Optional[bool] = None
    response_format: Optional[ResponseFormat] = None
    response_structure: Optional[ResponseStructureParams] = None


class ApiImportParams(BaseModel):
    """从 REST 接口导入请求"""

    url: str = Field(..., description="接口地址")
    method: Literal["GET", "POST", "PUT", "DELETE"] = Field("GET", description="请求方法")
    headers: Dict[str, str] = Field(default_factory=dict, description="请求头")
    body: Optional[Any] = Field(None, description="请求体（GET 不发送）")
    data_path: Optional[str] = Field(None, description="点分隔的数据路径，如 result.items")
    header_mapping: Dict[str, str] = Field(default_factory=dict, description="字段名 -> 列名")


class ApiExportParams(BaseModel):
    """推送到 REST 接口请求"""

    url: str = Field(..., description="接口地址")
    method: Literal["POST", "PUT"] = Field("POST", description="请求方法")
    headers: Dict[str, str] = Field(default_factory=dict, description="请求头")
    format: Literal["json", "csv"] = Field("json", description="数据格式")
    data_key: Optional[str] = Field(None, description="非空时数据包在该字段下")
