import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Query, Request, UploadFile

from thread_sync.core.protocol.payloads import CreateRequest, UpdateRequest
from thread_sync.services.article_service import ArticleService, ArticleServiceError

logger = logging.getLogger(__name__)

router = APIRouter()


def get_service(request: Request) -> ArticleService:
    return request.app.state.articles


def current_user(
    authorization: Optional[str] = Header(default=None),
    service: ArticleService = Depends(get_service),
) -> str:
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    user_id = service.authenticate(token)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user_id


def _raise_for(exc: ArticleServiceError) -> None:
    raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc


@router.get("/article/full")
async def list_full(service: ArticleService = Depends(get_service)) -> list:
    return await service.list_full()


@router.get("/article/full/{article_id}")
async def get_full(
    article_id: str,
    depth: int = Query(default=2, ge=0, le=20),
    service: ArticleService = Depends(get_service),
) -> dict:
    try:
        return await service.get_full(article_id, depth)
    except ArticleServiceError as exc:
        _raise_for(exc)


@router.post("/article/create/", status_code=201)
async def create(
    body: CreateRequest,
    user_id: str = Depends(current_user),
    service: ArticleService = Depends(get_service),
) -> dict:
    try:
        return await service.create(user_id, body.title, body.content, body.parent_id)
    except ArticleServiceError as exc:
        _raise_for(exc)


@router.patch("/article/{article_id}")
async def update(
    article_id: str,
    body: UpdateRequest,
    user_id: str = Depends(current_user),
    service: ArticleService = Depends(get_service),
) -> dict:
    try:
        return await service.update(user_id, article_id, body.title, body.content)
    except ArticleServiceError as exc:
        _raise_for(exc)


@router.delete("/article/{article_id}")
async def delete(
    article_id: str,
    user_id: str = Depends(current_user),
    service: ArticleService = Depends(get_service),
) -> dict:
    try:
        await service.delete(user_id, article_id)
    except ArticleServiceError as exc:
        _raise_for(exc)
    return {"message": "Article deleted"}


@router.post("/article/{article_id}/upvote")
async def upvote(
    article_id: str,
    user_id: str = Depends(current_user),
    service: ArticleService = Depends(get_service),
) -> dict:
    try:
        return await service.vote(user_id, article_id, "up")
    except ArticleServiceError as exc:
        _raise_for(exc)


@router.post("/article/{article_id}/downvote")
async def downvote(
    article_id: str,
    user_id: str = Depends(current_user),
    service: ArticleService = Depends(get_service),
) -> dict:
    try:
        return await service.vote(user_id, article_id, "down")
    except ArticleServiceError as exc:
        _raise_for(exc)


@router.get("/article/{article_id}/votes")
async def votes(article_id: str, service: ArticleService = Depends(get_service)) -> dict:
    try:
        return await service.vote_counts(article_id)
    except ArticleServiceError as exc:
        _raise_for(exc)


@router.post("/images/upload-multiple")
async def upload_multiple(
    article_id: str = Form(alias="articleId"),
    files: list[UploadFile] = File(),
    user_id: str = Depends(current_user),
    service: ArticleService = Depends(get_service),
) -> dict:
    names = [f.filename or "image" for f in files]
    try:
        await service.add_images(user_id, article_id, names)
    except ArticleServiceError as exc:
        _raise_for(exc)
    logger.info("images uploaded", extra={"node_id": article_id, "user_id": user_id, "action": "upload"})
    return {"uploaded": len(names)}
