import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import database
import tasks
from chat import handle_message
from config import settings
from errors import NotFoundError, StorageError, ValidationError
from models import IncomingMessage, Task, TaskFields, TaskPage

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    # Startup
    database.init_db()
    yield
    # Shutdown (nothing to do)

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(_request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": exc.errors})


@app.exception_handler(NotFoundError)
async def not_found_handler(_request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc) or "Task not found"})


@app.exception_handler(StorageError)
async def storage_error_handler(_request: Request, exc: StorageError) -> JSONResponse:
    logger.error("Storage failure: %s", exc)
    return JSONResponse(status_code=503, content={"detail": "Storage unavailable, try again later"})


@app.post("/webhook")
def webhook(message: IncomingMessage) -> dict:
    """Inbound chat message. Always answers 200 with exactly one reply."""
    logger.info("Received message from %s: %r", message.sender, message.body[:80])

    if not message.sender.strip():
        logger.warning("Webhook payload missing From")
        return {"success": False, "response": ["Bad Request: Missing required fields"]}

    # a blank Body falls through to the help reply
    reply = handle_message(message.sender, message.body, name=message.profile_name)
    return {"success": True, "response": [reply]}


# REST mirror for the web client. Every route is scoped by ?phoneNumber=

@app.get("/api/tasks")
def get_tasks(
    phone_number: str = Query(..., alias="phoneNumber"),
    status: Optional[str] = None,
    priority: Optional[str] = None,
    course: Optional[str] = None,
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    sort: Optional[str] = None,
    order: Optional[str] = None,
    limit: Optional[int] = None,
    skip: int = 0,
) -> TaskPage:
    owner = database.find_or_create_owner(phone_number)
    query = tasks.build_query(
        status=status,
        priority=priority,
        course=course,
        start=start_date,
        end=end_date,
        sort=sort,
        order=order,
        limit=limit,
        skip=skip,
    )
    return tasks.list_tasks(owner, query)


@app.post("/api/tasks", status_code=201)
def create_task(task_data: TaskFields, phone_number: str = Query(..., alias="phoneNumber")) -> Task:
    owner = database.find_or_create_owner(phone_number)
    return tasks.create_task(owner, task_data)


@app.get("/api/tasks/today")
def get_today_tasks(phone_number: str = Query(..., alias="phoneNumber")) -> list[Task]:
    owner = database.find_or_create_owner(phone_number)
    return tasks.list_due_today(owner)


@app.get("/api/tasks/{task_id}")
def get_task(task_id: str, phone_number: str = Query(..., alias="phoneNumber")) -> Task:
    owner = database.find_or_create_owner(phone_number)
    task = tasks.get_task(owner, task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@app.put("/api/tasks/{task_id}")
@app.patch("/api/tasks/{task_id}")
def update_task(
    task_id: str, task_data: TaskFields, phone_number: str = Query(..., alias="phoneNumber")
) -> Task:
    owner = database.find_or_create_owner(phone_number)
    result = tasks.update_task(owner, task_id, task_data)
    if not result:
        raise HTTPException(status_code=404, detail="Task not found")
    return result


@app.delete("/api/tasks/{task_id}")
def delete_task(task_id: str, phone_number: str = Query(..., alias="phoneNumber")) -> dict:
    owner = database.find_or_create_owner(phone_number)
    if not tasks.delete_task(owner, task_id):
        raise HTTPException(status_code=404, detail="Task not found")
    return {"status": "deleted"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
