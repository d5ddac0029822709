from contextlib import asynccontextmanager
from typing import Any, Dict, List

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel
from starlette.middleware.cors import CORSMiddleware

from compass.config import Settings
from compass.core import InteractionCore
from compass.errors import UnknownItemError
from compass.log import get_logger
from compass.middleware.request_id import RequestIdMiddleware

logger = get_logger("compass.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings.from_env()
    app.state.core = InteractionCore.from_settings(settings)  # type: ignore[attr-defined]
    yield
    await app.state.core.shutdown()  # type: ignore[attr-defined]


app = FastAPI(
    title="CSF Compass Interaction Core",
    description="Assistant streaming transcripts and optimistic assessment item edits.",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-Id"],
    allow_credentials=False,
)
app.add_middleware(RequestIdMiddleware)


class ContextBody(BaseModel):
    page_context: str


class ModeBody(BaseModel):
    mode: str


class MessageBody(BaseModel):
    text: str


class StatusBody(BaseModel):
    status: str


class NotesBody(BaseModel):
    notes: str


def _core(request: Request) -> InteractionCore:
    return request.app.state.core


@app.exception_handler(UnknownItemError)
async def _unknown_item(request: Request, exc: UnknownItemError):
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(ValueError)
async def _bad_value(request: Request, exc: ValueError):
    return JSONResponse(status_code=422, content={"error": str(exc)})


@app.get("/health", tags=["meta"])
async def health():
    return {"status": "ok"}


@app.get("/metrics", tags=["meta"], include_in_schema=False)
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.post("/context", tags=["chat"], description="Page context changed: cancel streams and reset both conversations.")
async def set_context(body: ContextBody, request: Request):
    _core(request).navigate(body.page_context)
    return {"pageContext": body.page_context}


@app.put("/chat/mode", tags=["chat"])
async def set_mode(body: ModeBody, request: Request):
    assistant = _core(request).assistant
    assistant.switch_mode(body.mode)
    assistant.open()
    return {"mode": assistant.mode, "conversation": assistant.conversation.to_dict()}


@app.get("/chat/{mode}", tags=["chat"])
async def get_conversation(mode: str, request: Request):
    return _core(request).conversation(mode).to_dict()


@app.post("/chat/{mode}/messages", tags=["chat"])
async def post_message(mode: str, body: MessageBody, request: Request):
    core = _core(request)
    message = core.send_message(mode, body.text)
    if message is None:
        return JSONResponse(status_code=409, content={"error": "message not accepted"})
    return JSONResponse(status_code=202, content={"message": message.to_dict()})


@app.post("/chat/cancel", tags=["chat"])
async def cancel_stream(request: Request):
    _core(request).cancel_active_stream()
    return {"cancelled": True}


@app.put("/items", tags=["items"])
async def load_items(items: List[Dict[str, Any]], request: Request):
    loaded = _core(request).load_items(items)
    return {"items": [i.to_dict() for i in loaded]}


@app.get("/items/{item_id}", tags=["items"])
async def get_item(item_id: str, request: Request):
    return _core(request).items.get(item_id).to_dict()


@app.patch("/items/{item_id}/status", tags=["items"])
async def patch_status(item_id: str, body: StatusBody, request: Request):
    return _core(request).set_item_status(item_id, body.status).to_dict()


@app.patch("/items/{item_id}/notes", tags=["items"])
async def patch_notes(item_id: str, body: NotesBody, request: Request):
    return _core(request).set_item_notes(item_id, body.notes).to_dict()


@app.get("/notifications", tags=["items"])
async def notifications(request: Request):
    return {"notifications": [n.to_dict() for n in _core(request).notifier.active()]}
