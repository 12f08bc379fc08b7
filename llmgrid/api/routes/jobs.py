"""列任务接口"""

import asyncio
import json

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse, ServerSentEvent

from llmgrid.api.deps import get_session
from llmgrid.events import Event, EventType
from llmgrid.schemas.response import ApiResponse, ok
from llmgrid.services.sheet import SheetSession

router = APIRouter(prefix="/jobs", tags=["列任务"])


@router.post("/columns/{index}/run", response_model=ApiResponse, summary="启动列任务")
async def run_column(index: int, session: SheetSession = Depends(get_session)):
    """在后台启动任务，进度通过 /jobs/columns/{index}/events 获取"""
    session.start_column(index)
    return ok(session.job_status(index), msg="任务已启动")


@router.post("/columns/{index}/cancel", response_model=ApiResponse, summary="取消列任务")
async def cancel_column(index: int, session: SheetSession = Depends(get_session)):
    """在下一行开始前生效"""
    session.cancel_column(index)
    return ok(session.job_status(index), msg="已请求取消")


@router.post("/columns/{index}/toggle", response_model=ApiResponse, summary="启动或取消列任务")
async def toggle_column(index: int, session: SheetSession = Depends(get_session)):
    session.toggle_column_processing(index)
    return ok(session.job_status(index))


@router.get("/columns/{index}", response_model=ApiResponse, summary="列任务状态")
async def job_status(index: int, session: SheetSession = Depends(get_session)):
    return ok(session.job_status(index))


@router.get("/columns/{index}/events", summary="列任务进度（SSE）")
async def job_events(index: int, session: SheetSession = Depends(get_session)):
    """
    推送该列的任务事件，任务结束后关闭连接

    事件格式：
    {"type": "job.start|row.done|row.skipped|job.error|job.end", "column_id": "...", "row": 0, "data": {...}}

    该列没有运行中的任务时，只推送一条 {"type": "status", "data": <任务状态>} 后关闭。
    """
    column_id = session.document.column(index).id
    queue: asyncio.Queue[Event] = asyncio.Queue()

    async def forward(event: Event) -> None:
        if event.column_id == column_id:
            queue.put_nowait(event)

    session.bus.on_all(forward)

    # 先注册再检查，任务在两者之间开始也不会漏掉事件
    if not session.is_job_active(index):
        session.bus.off_all(forward)
        status = {"type": "status", "column_id": column_id, "data": session.job_status(index)}

        async def snapshot():
            yield ServerSentEvent(data=json.dumps(status, ensure_ascii=False))

        return EventSourceResponse(snapshot())

    async def stream():
        try:
            while True:
                event = await queue.get()
                yield ServerSentEvent(data=json.dumps(event.to_dict(), ensure_ascii=False))
                if event.type == EventType.JOB_END:
                    break
        finally:
            session.bus.off_all(forward)

    return EventSourceResponse(stream())
