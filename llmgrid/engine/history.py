"""历史记录 - 基于快照的撤销/重做"""

from typing import List, Optional

from llmgrid.engine.document import Document


class HistoryManager:
    """
    线性历史记录

    history[cursor] 始终是当前可见的文档。撤销后再提交会丢弃游标之后的
    所有记录（不支持分支）。

    用法示例：
        history = HistoryManager(Document.create())
        history.commit(history.current.add_row())
        history.undo()
        history.redo()
    """

    def __init__(self, initial: Document, max_entries: Optional[int] = None):
        """
        Args:
            initial: 初始快照
            max_entries: 最多保留的快照数（None 表示不限制）
        """
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries 必须大于 0")
        self._history: List[Document] = [initial]
        self._cursor = 0
        self.max_entries = max_entries

    @property
    def current(self) -> Document:
        return self._history[self._cursor]

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._history) - 1

    def commit(self, document: Document) -> Document:
        """
        提交新快照

        截断游标之后的记录，追加新快照并把游标移到末尾。

        Returns:
            提交的快照
        """
        del self._history[self._cursor + 1:]
        self._history.append(document)

        if self.max_entries is not None and len(self._history) > self.max_entries:
            del self._history[: len(self._history) - self.max_entries]

        self._cursor = len(self._history) - 1
        return document

    def replace_current(self, document: Document) -> Document:
        """替换当前快照，不产生新的历史步骤（列宽、任务状态等）"""
        self._history[self._cursor] = document
        return document

    def undo(self) -> Optional[Document]:
        """撤销；已在最早的快照时返回 None"""
        if not self.can_undo:
            return None
        self._cursor -= 1
        return self.current

    def redo(self) -> Optional[Document]:
        """重做；已在最新的快照时返回 None"""
        if not self.can_redo:
            return None
        self._cursor += 1
        return self.current

    def reset(self, document: Document) -> None:
        """清空历史，只保留给定快照（导入时使用）"""
        self._history = [document]
        self._cursor = 0

    def __len__(self) -> int:
        return len(self._history)

    def __repr__(self) -> str:
        return f"HistoryManager(cursor={self._cursor}, entries={len(self._history)})"
