"""LLM 提示词 - 列转换任务的系统角色与用户消息"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


SYSTEM_ROLE = "你是一名数据分析与数据处理专家。"


class ResponseFormat(str, Enum):
    """期望的回复格式"""

    TEXT = "text"
    JSON = "json"
    HTML = "html"
    CSV = "csv"


@dataclass
class ResponseStructure:
    """期望的回复结构（回复中需要包含的部分）"""

    title: bool = True
    description: bool = True
    keywords: bool = False
    categories: bool = False
    summary: bool = False
    analysis: bool = False
    custom: List[str] = field(default_factory=list)


_FORMAT_LINES = {
    ResponseFormat.JSON: "- 只返回合法的 JSON",
    ResponseFormat.HTML: "- 只返回合法的 HTML",
    ResponseFormat.CSV: "- 以 CSV 格式返回（逗号分隔）",
    ResponseFormat.TEXT: "- 以纯文本返回",
}

_STRUCTURE_LINES = [
    ("title", "- 包含标题"),
    ("description", "- 包含描述"),
    ("keywords", "- 包含关键词"),
    ("categories", "- 包含分类"),
    ("summary", "- 包含摘要"),
    ("analysis", "- 包含分析"),
]


def format_prompt(
    prompt: str,
    value: str,
    response_format: ResponseFormat = ResponseFormat.TEXT,
    structure: Optional[ResponseStructure] = None,
) -> str:
    """
    构建发送给 LLM 的用户消息

    Args:
        prompt: 列上配置的转换指令
        value: 当前单元格的值
        response_format: 回复格式
        structure: 回复结构

    Returns:
        完整的用户消息
    """
    structure = structure or ResponseStructure()
    lines = ["期望的回复格式:", _FORMAT_LINES[ResponseFormat(response_format)]]

    lines.append("")
    lines.append("回复结构:")
    for attr, line in _STRUCTURE_LINES:
        if getattr(structure, attr):
            lines.append(line)

    if structure.custom:
        lines.append("")
        lines.append("需要包含的自定义字段:")
        lines.extend(f"- {name}" for name in structure.custom)

    header = "\n".join(lines)
    return f"{header}\n\n{prompt}\n\n输入: {value}\n\n回复:"
