from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .config import Settings, get_settings
from .errors import install_error_handling
from .health import router as health_router
from .log import configure_logging
from .package_routes import router as package_router
from .package_store import PackageStore
from .upload_routes import router as upload_router


def create_app(
    settings: Optional[Settings] = None, store: Optional[PackageStore] = None
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        docs_url=settings.DOCS_URL,
    )

    if store is None:
        store = PackageStore.with_example_packages() if settings.SEED_EXAMPLE_PACKAGES else PackageStore()
    app.state.package_store = store

    # Allow other domains to access the API only when origins are configured
    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    install_error_handling(app)

    # Uploads first so /packages/uploads/{id} wins over /packages/{id}/statistics
    app.include_router(health_router, tags=["system"])
    app.include_router(upload_router, tags=["uploads"])
    app.include_router(package_router, tags=["packages"])

    logger.info(
        "Started {} ({}) with {} packages", settings.APP_NAME, settings.ENV, len(store)
    )
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
