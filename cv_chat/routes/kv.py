# cv_chat/routes/kv.py
# Development-only passthrough to the record store; not mounted in production.
import json
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from cv_chat.utils.errors import StoreError

router = APIRouter(prefix="/api", tags=["kv"])


class KvPutReq(BaseModel):
    key: str = Field(min_length=1)
    value: Any


class KvGetReq(BaseModel):
    key: str = Field(min_length=1)


@router.post("/kv")
def kv_put(req: KvPutReq, request: Request):
    request.app.state.store.put(req.key, json.dumps(req.value, ensure_ascii=False))
    return {"success": True}


@router.post("/kv-get")
def kv_get(req: KvGetReq, request: Request):
    stored = request.app.state.store.get(req.key)
    if stored is None:
        return JSONResponse({"error": "Key not found"}, status_code=404)
    try:
        return {"value": json.loads(stored)}
    except ValueError:
        raise StoreError("Stored value is not valid JSON", details=req.key)
