"""LLM Grid 命令行入口 - 对文件中的一列运行转换任务"""

import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from llmgrid.core.config import Settings, setup_logging
from llmgrid.engine.excel_exporter import TableExporter
from llmgrid.engine.excel_parser import TableParser
from llmgrid.engine.llm_client import AIProvider
from llmgrid.events import Event, EventType
from llmgrid.processor import JobState
from llmgrid.services.sheet import SheetSession


def load_table(session: SheetSession, file_path: Path) -> bool:
    """
    加载文件到会话

    Args:
        session: 表格会话
        file_path: 文件路径

    Returns:
        是否加载成功
    """
    print(f"\n📄 文件: {file_path.name}")
    try:
        headers, rows = TableParser.parse_file(file_path)
    except (FileNotFoundError, ValueError) as e:
        print(f"   ❌ 解析失败: {e}")
        return False

    session.import_table(headers, rows)
    document = session.document
    print(f"   {document.row_count} 行 x {document.column_count} 列")
    print(f"   ✅ 解析成功")
    return True


def display_columns(session: SheetSession) -> None:
    """显示列信息"""
    print("\n" + "=" * 60)
    print("📊 列:")
    print("=" * 60)
    kinds = session.column_kinds()
    for index, column in enumerate(session.document.columns):
        print(f"  [{index}] {column.name} ({kinds[index]})")


def resolve_column(session: SheetSession, column: str) -> Optional[int]:
    """按索引或列名查找列"""
    if column.isdigit():
        index = int(column)
        return index if index < session.document.column_count else None
    for index, col in enumerate(session.document.columns):
        if col.name == column:
            return index
    return None


async def run_job(session: SheetSession, index: int):
    """运行列任务并打印进度"""
    total = session.document.row_count

    async def on_event(event: Event) -> None:
        if event.type == EventType.ROW_DONE:
            mark = "⚠️ " if event.error_message else "✅"
            print(f"   {mark} 第 {event.row + 1}/{total} 行")
        elif event.type == EventType.ROW_SKIPPED:
            print(f"   ⏭️  第 {event.row + 1}/{total} 行为空，跳过")

    session.bus.on_all(on_event)
    try:
        return await session.run_column(index)
    finally:
        session.bus.off_all(on_event)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="llmgrid",
        description="LLM Grid 表格批处理：对一列的每个单元格调用 AI 转换",
    )
    parser.add_argument("file", help="Excel / CSV 文件")
    parser.add_argument("-c", "--column", required=True, help="列索引（从 0 开始）或列名")
    parser.add_argument("-p", "--prompt", required=True, help="转换提示词")
    parser.add_argument(
        "--provider",
        choices=[p.value for p in AIProvider],
        help="AI 服务（默认读取 AI_PROVIDER）",
    )
    parser.add_argument("--model", help="模型名称")
    parser.add_argument("--delay-ms", type=int, help="行间延迟（毫秒）")
    parser.add_argument("-o", "--output", help="输出文件（默认 output_<时间>.xlsx）")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """主函数"""
    load_dotenv()
    args = build_parser().parse_args(argv)

    settings = Settings()
    setup_logging(settings.LOG_LEVEL)
    session = SheetSession.from_settings(settings)

    print("=" * 60)
    print("📂 正在加载文件...")
    print("=" * 60)

    if not load_table(session, Path(args.file)):
        return 1

    display_columns(session)

    index = resolve_column(session, args.column)
    if index is None:
        print(f"\n⚠️  找不到列: {args.column}")
        return 1

    changes = {}
    if args.provider:
        changes["ai_provider"] = args.provider
    if args.model:
        changes["ai_model"] = args.model
    if args.delay_ms is not None:
        changes["processing_delay_ms"] = args.delay_ms
    if changes:
        session.update_settings(**changes)

    session.set_prompt(index, args.prompt)

    print("\n" + "=" * 60)
    print(f"🤖 处理列: {session.document.columns[index].name}")
    print(f"   服务: {session.settings.ai_provider.value}  模型: {session.settings.model}")
    print("=" * 60)

    result = asyncio.run(run_job(session, index))

    if result.state != JobState.COMPLETED:
        print(f"\n❌ 任务未完成: {result.message or result.state.value}")
        return 1

    print(f"\n✅ 完成: 处理 {result.processed} 行，跳过 {result.skipped} 行，错误 {result.provider_errors} 行")

    # ==================== 导出结果 ====================
    output = args.output or f"output_{datetime.now().strftime('%Y%m%d_%H%M%S')}.xlsx"
    headers, rows = session.export_table()
    try:
        path = TableExporter.save(output, headers, rows)
    except (OSError, ValueError) as e:
        print(f"\n❌ 导出失败: {e}")
        return 1

    print(f"💾 已导出到: {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
