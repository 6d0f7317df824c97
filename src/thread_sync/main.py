from typing import Optional

from fastapi import FastAPI

from thread_sync.api.articles import router as articles_router
from thread_sync.config import ClientSettings
from thread_sync.logging_config import configure_logging
from thread_sync.services.article_service import ArticleService


def create_app(service: Optional[ArticleService] = None) -> FastAPI:
    app = FastAPI(title="thread-sync reference backend")
    app.state.articles = service or ArticleService()

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    app.include_router(articles_router)
    return app


configure_logging(ClientSettings().log_level)

app = create_app()
