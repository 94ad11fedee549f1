from fastapi import FastAPI

from subscription_backend import __version__
from subscription_backend.core.conf import settings
from subscription_backend.core.log import setup_logging
from subscription_backend.src.billing.endpoints import billing_router


def register_app() -> FastAPI:
    setup_logging()

    app = FastAPI(
        title=settings.FASTAPI_TITLE,
        version=__version__,
        description=settings.FASTAPI_DESCRIPTION,
        docs_url=settings.FASTAPI_DOCS_URL,
        openapi_url=settings.FASTAPI_OPENAPI_URL,
    )
    app.include_router(billing_router, prefix=settings.FASTAPI_API_V1_PATH)
    return app


app = register_app()
