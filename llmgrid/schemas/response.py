"""统一响应格式"""

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """统一响应：{code, data, msg}"""

    code: int = Field(0, description="业务状态码，0 表示成功")
    data: Optional[T] = Field(None, description="响应数据")
    msg: str = Field("success", description="提示信息")


def ok(data: Any = None, msg: str = "success") -> ApiResponse:
    return ApiResponse(code=0, data=data, msg=msg)
