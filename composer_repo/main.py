import logging
import os

from fastapi import FastAPI

from composer_repo.api.composer import router as composer_router
from composer_repo.core.dependencies import get_component_store

# Configure logging
logging.basicConfig(
    level=os.environ.get("COMPOSER_REPO_LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Python Composer Repository",
    version="0.1.0",
    description="FastAPI-based Composer repository with hosted, proxy and group modes.",
)


@app.on_event("startup")
async def startup_event() -> None:
    """
    Load repository configuration and the hosted component index from disk.
    """
    store = get_component_store()
    names = ", ".join(r.name for r in store.get_repository_config().repositories)
    logger.info(f"Serving Composer repositories: {names}")


@app.get("/health")
async def health() -> dict:
    """
    Lightweight health check endpoint.
    """
    return {"status": "ok"}


app.include_router(composer_router, tags=["composer"])


if __name__ == "__main__":
    """
    Allow running `python -m composer_repo.main` to start the Uvicorn development server.
    """
    import uvicorn

    uvicorn.run(
        "composer_repo.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
