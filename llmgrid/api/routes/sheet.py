"""表格编辑接口"""

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, UploadFile, status
from fastapi.responses import Response

from llmgrid.api.deps import get_session
from llmgrid.engine.api_adapter import ApiSource, ApiTarget
from llmgrid.engine.excel_exporter import MEDIA_TYPES, TableExporter
from llmgrid.engine.excel_parser import TableParser
from llmgrid.engine.models import Filter
from llmgrid.schemas.response import ApiResponse, ok
from llmgrid.schemas.sheet import (
    ApiExportParams,
    ApiImportParams,
    FilterParams,
    ImportParams,
    UpdateCellParams,
    UpdateColumnParams,
)
from llmgrid.services.sheet import SheetSession

router = APIRouter(prefix="/sheet", tags=["表格"])


def sheet_payload(session: SheetSession) -> dict:
    """当前文档 + 历史状态 + 筛选条件"""
    payload = session.document.to_dict()
    payload["can_undo"] = session.history.can_undo
    payload["can_redo"] = session.history.can_redo
    payload["filters"] = [f.to_dict() for f in session.filters]
    return payload


@router.get("", response_model=ApiResponse, summary="获取当前表格")
async def get_sheet(session: SheetSession = Depends(get_session)):
    return ok(sheet_payload(session))


@router.get("/view", response_model=ApiResponse, summary="获取筛选后的行")
async def get_filtered_view(session: SheetSession = Depends(get_session)):
    """返回通过全部筛选条件的行及其原始行号"""
    indices = session.filtered_row_indices()
    rows = [[cell.value for cell in row] for row in session.filtered_rows()]
    return ok({"row_indices": indices, "rows": rows, "column_kinds": session.column_kinds()})


# ==================== 单元格与行列 ====================


@router.put("/cells/{row}/{col}", response_model=ApiResponse, summary="更新单元格")
async def update_cell(row: int, col: int, params: UpdateCellParams, session: SheetSession = Depends(get_session)):
    session.update_cell(row, col, params.value)
    return ok(sheet_payload(session))


@router.post("/rows", response_model=ApiResponse, summary="追加一行")
async def add_row(session: SheetSession = Depends(get_session)):
    session.add_row()
    return ok(sheet_payload(session))


@router.delete("/rows/{index}", response_model=ApiResponse, summary="删除一行")
async def delete_row(index: int, session: SheetSession = Depends(get_session)):
    """只剩一行时不做修改"""
    session.delete_row(index)
    return ok(sheet_payload(session))


@router.post("/columns", response_model=ApiResponse, summary="追加一列")
async def add_column(session: SheetSession = Depends(get_session)):
    session.add_column()
    return ok(sheet_payload(session))


@router.delete("/columns/{index}", response_model=ApiResponse, summary="删除一列")
async def delete_column(index: int, session: SheetSession = Depends(get_session)):
    """只剩一列时不做修改"""
    session.delete_column(index)
    return ok(sheet_payload(session))


@router.patch("/columns/{index}", response_model=ApiResponse, summary="修改列名、列宽或提示词")
async def update_column(index: int, params: UpdateColumnParams, session: SheetSession = Depends(get_session)):
    if params.name is not None:
        session.rename_column(index, params.name)
    if params.width is not None:
        session.resize_column(index, params.width)
    if params.prompt is not None:
        session.set_prompt(index, params.prompt)
    return ok(sheet_payload(session))


# ==================== 撤销 / 重做 ====================


@router.post("/undo", response_model=ApiResponse, summary="撤销")
async def undo(session: SheetSession = Depends(get_session)):
    session.undo()
    return ok(sheet_payload(session))


@router.post("/redo", response_model=ApiResponse, summary="重做")
async def redo(session: SheetSession = Depends(get_session)):
    session.redo()
    return ok(sheet_payload(session))


# ==================== 导入 / 导出 ====================


@router.post("/import", response_model=ApiResponse, summary="导入表格数据")
async def import_table(params: ImportParams, session: SheetSession = Depends(get_session)):
    session.import_table(params.headers, params.rows)
    return ok(sheet_payload(session))


@router.post("/import/file", response_model=ApiResponse, summary="上传文件导入")
async def import_file(file: UploadFile, session: SheetSession = Depends(get_session)):
    """支持 .xlsx / .xls / .xlsm / .csv，只读取第一个 sheet"""
    content = await file.read()
    try:
        headers, rows = TableParser.parse_bytes(content, file.filename or "")
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    session.import_table(headers, rows)
    return ok(sheet_payload(session))


@router.get("/export", summary="导出表格")
async def export_table(format: Literal["xlsx", "csv"] = "xlsx", session: SheetSession = Depends(get_session)):
    headers, rows = session.export_table()
    content = TableExporter.export(format, headers, rows)
    return Response(
        content=content,
        media_type=MEDIA_TYPES[format],
        headers={"Content-Disposition": f'attachment; filename="export.{format}"'},
    )


@router.post("/import/api", response_model=ApiResponse, summary="从 REST 接口导入")
async def import_from_api(params: ApiImportParams, session: SheetSession = Depends(get_session)):
    """接口需返回对象数组（可用 data_path 指定位置），列由第一个对象的字段决定"""
    await session.import_from_api(ApiSource(**params.model_dump()))
    return ok(sheet_payload(session))


@router.post("/export/api", response_model=ApiResponse, summary="推送到 REST 接口")
async def export_to_api(params: ApiExportParams, session: SheetSession = Depends(get_session)):
    status_code = await session.export_to_api(ApiTarget(**params.model_dump()))
    return ok({"status_code": status_code}, msg="导出成功")


# ==================== 筛选 ====================


@router.get("/filters", response_model=ApiResponse, summary="获取筛选条件")
async def list_filters(session: SheetSession = Depends(get_session)):
    return ok([f.to_dict() for f in session.filters])


@router.post("/filters", response_model=ApiResponse, summary="添加筛选条件")
async def add_filter(params: FilterParams, session: SheetSession = Depends(get_session)):
    flt = Filter(
        column=params.column,
        kind=params.kind,
        operator=params.operator,
        value=params.value,
        value2=params.value2,
    )
    filters = session.add_filter(flt)
    return ok([f.to_dict() for f in filters])


@router.delete("/filters/{index}", response_model=ApiResponse, summary="删除筛选条件")
async def remove_filter(index: int, session: SheetSession = Depends(get_session)):
    filters = session.remove_filter(index)
    return ok([f.to_dict() for f in filters])


@router.delete("/filters", response_model=ApiResponse, summary="清空筛选条件")
async def clear_filters(session: SheetSession = Depends(get_session)):
    session.clear_filters()
    return ok([])
