from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

from libs.core.exceptions import (
    DomainError,
    InvalidFormatError,
    NotFoundError,
    ProtectedResourceError,
    ValidationError,
)
from libs.core.models import QueryFilters
from libs.logging import setup_logging
from libs.store import QADatabase

# ---------------------------------------------------------------------------
# Lifespan and dependency factories


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    setup_logging()
    database = QADatabase.from_settings()
    database.initialize()
    app.state.database = database
    try:
        yield
    finally:
        database.close()


def get_database(request: Request) -> QADatabase:
    return request.app.state.database


# ---------------------------------------------------------------------------
# Pydantic schemas


class CreatePromptRequest(BaseModel):
    question: str = Field(..., min_length=1)
    answer: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    folder: Optional[str] = None
    rating: Optional[int] = None
    score: Optional[int] = None


class RatingRequest(BaseModel):
    rating: float


class IdsRequest(BaseModel):
    ids: List[str]


class MoveRequest(BaseModel):
    ids: List[str]
    folder: str = Field(..., min_length=1)


class FolderRequest(BaseModel):
    name: str = Field(..., min_length=1)


class ImportRequest(BaseModel):
    data: Dict[str, Any]
    merge: bool = False


# ---------------------------------------------------------------------------
# FastAPI application

app = FastAPI(title="Q&A Synthesizer API", lifespan=lifespan)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, ProtectedResourceError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, InvalidFormatError):
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": str(exc), "errors": exc.errors},
        )
    elif isinstance(exc, ValidationError):
        code = status.HTTP_400_BAD_REQUEST
    else:  # pragma: no cover - generic error
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return JSONResponse(status_code=code, content={"detail": str(exc)})


# Routes ---------------------------------------------------------------------


@app.get("/health")
def health(db: QADatabase = Depends(get_database)) -> Dict[str, Any]:
    return {"status": "ok", "dirty": db.is_dirty, "records": len(db.data.records)}


@app.get("/prompts")
def list_prompts(
    folder: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    rating: Optional[int] = Query(None, ge=0, le=5),
    start: Optional[int] = None,
    end: Optional[int] = None,
    sort_by: str = Query("newest", alias="sortBy"),
    db: QADatabase = Depends(get_database),
) -> List[Dict[str, Any]]:
    date_range = {"start": start, "end": end} if start is not None and end is not None else None
    filters = QueryFilters(
        folder=folder,
        category=category,
        search=search,
        rating=rating,
        date_range=date_range,
        sort_by=sort_by,
    )
    return [r.to_payload() for r in db.query(filters)]


@app.post("/prompts", status_code=status.HTTP_201_CREATED)
def create_prompt(req: CreatePromptRequest, db: QADatabase = Depends(get_database)) -> Dict[str, Any]:
    record = db.add_prompt(
        req.question,
        req.answer,
        category=req.category,
        tags=req.tags,
        folder=req.folder,
        rating=req.rating,
        score=req.score,
    )
    return record.to_payload()


@app.post("/prompts/batch-delete")
def batch_delete(req: IdsRequest, db: QADatabase = Depends(get_database)) -> Dict[str, Any]:
    deleted = db.batch_delete(req.ids)
    return {"deleted": [r.id for r in deleted]}


@app.post("/prompts/move")
def move_prompts(req: MoveRequest, db: QADatabase = Depends(get_database)) -> Dict[str, Any]:
    moved = db.move_to_folder(req.ids, req.folder)
    return {"moved": [r.id for r in moved], "folder": req.folder}


@app.get("/prompts/{prompt_id}")
def get_prompt(prompt_id: str, db: QADatabase = Depends(get_database)) -> Dict[str, Any]:
    record = db.get_prompt(prompt_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prompt not found")
    return record.to_payload()


@app.patch("/prompts/{prompt_id}")
def update_prompt(
    prompt_id: str,
    updates: Dict[str, Any] = Body(...),
    db: QADatabase = Depends(get_database),
) -> Dict[str, Any]:
    return db.update_prompt(prompt_id, updates).to_payload()


@app.delete("/prompts/{prompt_id}")
def delete_prompt(prompt_id: str, db: QADatabase = Depends(get_database)) -> Dict[str, Any]:
    return db.delete_prompt(prompt_id).to_payload()


@app.post("/prompts/{prompt_id}/views")
def increment_views(prompt_id: str, db: QADatabase = Depends(get_database)) -> Dict[str, Any]:
    record = db.increment_views(prompt_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prompt not found")
    return record.to_payload()


@app.put("/prompts/{prompt_id}/rating")
def update_rating(
    prompt_id: str, req: RatingRequest, db: QADatabase = Depends(get_database)
) -> Dict[str, Any]:
    record = db.update_rating(prompt_id, req.rating)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prompt not found")
    return record.to_payload()


@app.get("/folders")
def list_folders(db: QADatabase = Depends(get_database)) -> List[str]:
    return db.data.folders


@app.post("/folders", status_code=status.HTTP_201_CREATED)
def create_folder(req: FolderRequest, db: QADatabase = Depends(get_database)) -> Dict[str, Any]:
    return {"name": req.name, "created": db.add_folder(req.name)}


@app.delete("/folders/{name}")
def delete_folder(name: str, db: QADatabase = Depends(get_database)) -> Dict[str, Any]:
    if not db.delete_folder(name):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Folder not found")
    return {"name": name, "deleted": True}


@app.get("/analytics")
def analytics(db: QADatabase = Depends(get_database)) -> Dict[str, Any]:
    return db.get_analytics().to_payload()


@app.get("/export")
def export_data(db: QADatabase = Depends(get_database)) -> Response:
    return Response(
        content=db.export_data(),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="qa-export.json"'},
    )


@app.post("/import")
def import_data(req: ImportRequest, db: QADatabase = Depends(get_database)) -> Dict[str, Any]:
    return db.import_data(req.data, merge=req.merge).model_dump()


@app.post("/clear")
def clear_data(db: QADatabase = Depends(get_database)) -> Dict[str, str]:
    db.clear_data()
    return {"status": "cleared"}


__all__ = ["app", "get_database", "lifespan"]
