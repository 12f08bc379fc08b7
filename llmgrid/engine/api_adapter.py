"""外部接口适配器 - 从 REST 接口导入表格数据，或把表格推送到 REST 接口"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx

from llmgrid.engine.errors import ExternalApiError, ValidationError
from llmgrid.engine.excel_exporter import TableExporter
from llmgrid.engine.excel_parser import ParsedTable

logger = logging.getLogger(__name__)

IMPORT_METHODS = {"GET", "POST", "PUT", "DELETE"}
EXPORT_METHODS = {"POST", "PUT"}
EXPORT_FORMATS = {"json", "csv"}


@dataclass
class ApiSource:
    """
    导入接口配置

    Attributes:
        url: 接口地址
        method: 请求方法
        headers: 请求头
        body: 请求体（GET 请求不发送）
        data_path: 点分隔的数据路径，如 "result.items"，指向对象数组
        header_mapping: 字段名 -> 列名
    """

    url: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    data_path: Optional[str] = None
    header_mapping: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self.method = self.method.upper()
        if self.method not in IMPORT_METHODS:
            raise ValidationError(f"不支持的请求方法: {self.method}")


@dataclass
class ApiTarget:
    """
    导出接口配置

    Attributes:
        url: 接口地址
        method: POST 或 PUT
        headers: 请求头（会覆盖默认的 Content-Type）
        format: json（对象数组）或 csv
        data_key: 非空时把数据包在 {data_key: ...} 里发送
    """

    url: str
    method: str = "POST"
    headers: Dict[str, str] = field(default_factory=dict)
    format: str = "json"
    data_key: Optional[str] = None

    def __post_init__(self):
        self.method = self.method.upper()
        if self.method not in EXPORT_METHODS:
            raise ValidationError(f"导出只支持 POST / PUT，收到: {self.method}")
        if self.format not in EXPORT_FORMATS:
            raise ValidationError(f"不支持的导出格式: {self.format}")


def cell_text(value: Any) -> str:
    """把 JSON 值转换为单元格字符串"""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def extract_records(payload: Any, data_path: Optional[str]) -> List[dict]:
    """
    按数据路径取出对象数组

    Raises:
        ValidationError: 路径不存在，或取到的不是对象数组
    """
    data = payload
    if data_path:
        for key in data_path.split("."):
            if isinstance(data, dict) and key in data:
                data = data[key]
            elif isinstance(data, list) and key.isdigit() and int(key) < len(data):
                data = data[int(key)]
            else:
                raise ValidationError(f"数据路径不存在: {data_path}")

    if not isinstance(data, list):
        raise ValidationError("接口数据必须是数组")
    if not data:
        raise ValidationError("接口返回的数组为空")
    if not all(isinstance(item, dict) for item in data):
        raise ValidationError("接口数组的元素必须是对象")
    return data


def records_to_table(records: Sequence[dict], header_mapping: Optional[Dict[str, str]] = None) -> ParsedTable:
    """
    对象数组 -> (表头, 行数据)

    列由第一个对象的字段决定，缺少字段的单元格为空字符串。
    """
    mapping = header_mapping or {}
    keys = list(records[0].keys())
    headers = [mapping.get(key) or key for key in keys]
    rows = [[cell_text(item.get(key)) for key in keys] for item in records]
    return headers, rows


def table_to_records(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> List[Dict[str, str]]:
    """(表头, 行数据) -> 对象数组；重名的列以后出现的为准"""
    return [dict(zip(headers, row)) for row in rows]


class ApiTableClient:
    """
    REST 接口客户端

    用法示例：
        client = ApiTableClient()
        headers, rows = await client.fetch(ApiSource(url="https://example.com/items", data_path="data"))
        await client.push(ApiTarget(url="https://example.com/upload"), headers, rows)
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None, timeout: float = 30.0):
        """
        Args:
            transport: 自定义传输层（测试时传入 httpx.MockTransport）
            timeout: 请求超时（秒）
        """
        self.transport = transport
        self.timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=self.timeout)

    async def fetch(self, source: ApiSource) -> ParsedTable:
        """
        请求接口并转换为 (表头, 行数据)

        Raises:
            ExternalApiError: 请求失败或返回的不是 JSON
            ValidationError: 数据结构不符合要求
        """
        logger.info(f"从接口导入: {source.method} {source.url}")
        body = source.body if source.method != "GET" else None

        async with self._client() as client:
            response = await self._send(client, source.method, source.url, headers=source.headers, json=body)

        try:
            payload = response.json()
        except ValueError as e:
            raise ExternalApiError(source.url, f"返回的不是 JSON: {e}") from e

        records = extract_records(payload, source.data_path)
        headers, rows = records_to_table(records, source.header_mapping)
        logger.info(f"接口数据: {len(headers)} 列 x {len(rows)} 行")
        return headers, rows

    async def push(self, target: ApiTarget, headers: Sequence[str], rows: Sequence[Sequence[str]]) -> int:
        """
        把表格推送到接口

        Returns:
            接口返回的 HTTP 状态码

        Raises:
            ExternalApiError: 请求失败
        """
        if target.format == "csv":
            data: Any = TableExporter.to_dataframe(headers, rows).to_csv(index=False)
            content_type = "text/csv"
        else:
            data = table_to_records(headers, rows)
            content_type = "application/json"

        if target.data_key:
            data = {target.data_key: data}
            content_type = "application/json"

        request_headers = {"Content-Type": content_type, **target.headers}
        body = data if isinstance(data, str) else json.dumps(data, ensure_ascii=False)

        logger.info(f"导出到接口: {target.method} {target.url} [格式] {target.format} [行数] {len(rows)}")
        async with self._client() as client:
            response = await self._send(
                client, target.method, target.url, headers=request_headers, content=body.encode("utf-8")
            )
        return response.status_code

    @staticmethod
    async def _send(client: httpx.AsyncClient, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ExternalApiError(url, f"HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise ExternalApiError(url, f"请求失败: {e}") from e
        return response
