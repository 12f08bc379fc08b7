"""文档模型 - 不可变的表格网格

所有修改操作都返回新的 Document，旧快照保持不变，未修改的行按引用共享，
历史记录可以低成本地保存任意多个版本。
"""

from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from llmgrid.engine.errors import ValidationError
from llmgrid.engine.models import (
    Cell,
    Column,
    EMPTY_CELL,
    DEFAULT_COLUMN_WIDTH,
    default_column_name,
    new_row_id,
)

Row = Tuple[Cell, ...]


def _empty_row(width: int) -> Row:
    return (EMPTY_CELL,) * width


def _column_state(column: Column) -> dict:
    return {
        "is_processing": column.is_processing,
        "last_error": column.last_error,
        "width": column.width,
        "prompt": column.prompt,
    }


@dataclass(frozen=True)
class Document:
    """
    表格文档

    不变量：
    - 至少 1 行、1 列
    - 每一行的单元格数等于列数
    - row_ids 与 rows 一一对应，行的 id 在增删行、编辑单元格时保持不变
    """

    rows: Tuple[Row, ...]
    columns: Tuple[Column, ...]
    row_ids: Tuple[str, ...] = ()

    def __post_init__(self):
        if len(self.row_ids) != len(self.rows):
            object.__setattr__(self, "row_ids", tuple(new_row_id() for _ in self.rows))

    # ==================== 创建 ====================

    @classmethod
    def create(cls, row_count: int = 5, column_count: int = 3) -> "Document":
        """
        创建空白文档

        Args:
            row_count: 初始行数
            column_count: 初始列数

        Returns:
            Document 对象
        """
        if row_count < 1 or column_count < 1:
            raise ValidationError("文档至少需要 1 行 1 列")

        columns = tuple(
            Column(name=default_column_name(i + 1)) for i in range(column_count)
        )
        rows = tuple(_empty_row(column_count) for _ in range(row_count))
        return cls(rows=rows, columns=columns)

    @classmethod
    def from_table(
        cls,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
    ) -> "Document":
        """
        从 (表头, 行数据) 构建文档（导入边界）

        - 所有列都重新生成 id，使用默认宽度和空闲状态
        - 参差不齐的行用空单元格补齐
        - 超出表头数量的单元格会追加默认名称的列，不会丢弃任何输入列
        - 没有数据行时生成一行空行

        Args:
            headers: 表头
            rows: 行数据

        Returns:
            Document 对象

        Raises:
            ValidationError: 表头和数据都为空
        """
        width = max([len(headers)] + [len(row) for row in rows])
        if width == 0:
            raise ValidationError("导入数据为空：没有表头也没有数据")

        columns = []
        for i in range(width):
            name = headers[i] if i < len(headers) else None
            if name is None or str(name).strip() == "":
                name = default_column_name(i + 1)
            columns.append(Column(name=str(name), width=DEFAULT_COLUMN_WIDTH))

        new_rows = []
        for row in rows:
            cells = [Cell(value="" if v is None else str(v)) for v in row]
            cells.extend([EMPTY_CELL] * (width - len(cells)))
            new_rows.append(tuple(cells))

        if not new_rows:
            new_rows.append(_empty_row(width))

        return cls(rows=tuple(new_rows), columns=tuple(columns))

    def replace(self, headers: Sequence[str], rows: Sequence[Sequence[str]]) -> "Document":
        """整体替换为导入的数据（旧的列 id 全部失效）"""
        return Document.from_table(headers, rows)

    # ==================== 查询 ====================

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return len(self.columns)

    def cell(self, row: int, col: int) -> Cell:
        self._check_cell(row, col)
        return self.rows[row][col]

    def column(self, index: int) -> Column:
        self._check_column(index)
        return self.columns[index]

    def row_index(self, row_id: str) -> Optional[int]:
        """按 id 查找行索引，找不到返回 None"""
        try:
            return self.row_ids.index(row_id)
        except ValueError:
            return None

    def column_index(self, column_id: str) -> Optional[int]:
        """按 id 查找列索引，找不到返回 None"""
        for i, column in enumerate(self.columns):
            if column.id == column_id:
                return i
        return None

    def values(self) -> List[List[str]]:
        """全部单元格的字符串值"""
        return [[cell.value for cell in row] for row in self.rows]

    def column_values(self, col: int) -> List[str]:
        self._check_column(col)
        return [row[col].value for row in self.rows]

    def to_table(self) -> Tuple[List[str], List[List[str]]]:
        """
        导出为 (表头, 行数据)（导出边界）

        Returns:
            (headers, rows)
        """
        return [c.name for c in self.columns], self.values()

    # ==================== 行操作 ====================

    def add_row(self) -> "Document":
        """末尾追加一行空行"""
        return replace(
            self,
            rows=self.rows + (_empty_row(self.column_count),),
            row_ids=self.row_ids + (new_row_id(),),
        )

    def delete_row(self, index: int) -> "Document":
        """删除一行；只剩一行时不做任何修改"""
        self._check_row(index)
        if self.row_count <= 1:
            return self
        return replace(
            self,
            rows=self.rows[:index] + self.rows[index + 1:],
            row_ids=self.row_ids[:index] + self.row_ids[index + 1:],
        )

    # ==================== 列操作 ====================

    def add_column(self) -> "Document":
        """末尾追加一列，每一行补一个空单元格"""
        column = Column(name=default_column_name(self.column_count + 1))
        return replace(
            self,
            rows=tuple(row + (EMPTY_CELL,) for row in self.rows),
            columns=self.columns + (column,),
        )

    def delete_column(self, index: int) -> "Document":
        """删除一列；只剩一列时不做任何修改"""
        self._check_column(index)
        if self.column_count <= 1:
            return self
        return replace(
            self,
            rows=tuple(row[:index] + row[index + 1:] for row in self.rows),
            columns=self.columns[:index] + self.columns[index + 1:],
        )

    def rename_column(self, index: int, name: str) -> "Document":
        return self._update_column(index, name=name)

    def resize_column(self, index: int, width: int) -> "Document":
        if width <= 0:
            raise ValidationError(f"列宽必须大于 0，收到: {width}")
        return self._update_column(index, width=int(width))

    def set_prompt(self, index: int, prompt: str) -> "Document":
        return self._update_column(index, prompt=prompt)

    def set_processing(self, index: int, processing: bool) -> "Document":
        return self._update_column(index, is_processing=processing)

    def set_last_error(self, index: int, message: Optional[str]) -> "Document":
        return self._update_column(index, last_error=message)

    def with_column_state_from(self, other: "Document") -> "Document":
        """
        从另一个文档按列 id 复制不参与历史的列状态

        包括 is_processing、last_error、width、prompt。撤销/重做恢复旧快照时使用，
        保证正在运行的任务不会因为撤销而被取消。
        """
        state = {c.id: _column_state(c) for c in other.columns}
        columns = []
        changed = False
        for column in self.columns:
            if column.id in state:
                if state[column.id] != _column_state(column):
                    column = replace(column, **state[column.id])
                    changed = True
            elif column.is_processing:
                column = replace(column, is_processing=False)
                changed = True
            columns.append(column)
        if not changed:
            return self
        return replace(self, columns=tuple(columns))

    # ==================== 单元格操作 ====================

    def update_cell(self, row: int, col: int, value: str) -> "Document":
        """
        更新单元格的值

        Raises:
            ValidationError: 行列越界
        """
        self._check_cell(row, col)
        old_row = self.rows[row]
        new_row = old_row[:col] + (replace(old_row[col], value=value),) + old_row[col + 1:]
        return replace(self, rows=self.rows[:row] + (new_row,) + self.rows[row + 1:])

    # ==================== 辅助方法 ====================

    def _update_column(self, index: int, **changes) -> "Document":
        self._check_column(index)
        column = replace(self.columns[index], **changes)
        return replace(
            self,
            columns=self.columns[:index] + (column,) + self.columns[index + 1:],
        )

    def _check_row(self, index: int) -> None:
        if not 0 <= index < self.row_count:
            raise ValidationError(f"行索引越界: {index}（共 {self.row_count} 行）")

    def _check_column(self, index: int) -> None:
        if not 0 <= index < self.column_count:
            raise ValidationError(f"列索引越界: {index}（共 {self.column_count} 列）")

    def _check_cell(self, row: int, col: int) -> None:
        self._check_row(row)
        self._check_column(col)

    def to_dict(self) -> dict:
        return {
            "columns": [c.to_dict() for c in self.columns],
            "rows": self.values(),
            "row_ids": list(self.row_ids),
        }

    def __repr__(self) -> str:
        return f"Document({self.row_count} 行 x {self.column_count} 列)"
