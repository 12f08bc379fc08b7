"""Unit tests for prompt formatting."""

from llmgrid.engine.prompt import ResponseFormat, ResponseStructure, format_prompt


class TestFormatPrompt:
    """Tests for format_prompt."""

    def test_default_layout(self):
        message = format_prompt("翻译成英文", "你好")

        assert message.startswith("期望的回复格式:\n- 以纯文本返回")
        assert "- 包含标题" in message
        assert "- 包含描述" in message
        assert "- 包含关键词" not in message
        assert message.endswith("翻译成英文\n\n输入: 你好\n\n回复:")

    def test_json_with_custom_fields(self):
        structure = ResponseStructure(title=False, description=False, summary=True, custom=["sku", "price"])

        message = format_prompt("提取字段", "商品 A 19.9 元", ResponseFormat.JSON, structure)

        assert "- 只返回合法的 JSON" in message
        assert "- 包含摘要" in message
        assert "- 包含标题" not in message
        assert "需要包含的自定义字段:\n- sku\n- price" in message

    def test_accepts_format_string(self):
        assert "- 以 CSV 格式返回（逗号分隔）" in format_prompt("p", "v", "csv")
