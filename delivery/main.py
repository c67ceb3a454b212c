from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from delivery.catalog.routes import router as catalog_router
from delivery.config.dependencies import AppContext, build_context
from delivery.config.settings import get_settings
from delivery.notifications.routes import router as notifications_router
from delivery.orders.routes import router as orders_router
from delivery.shared.errors import DeliveryError
from delivery.shared.health.router import health_router


def create_app(context: Optional[AppContext] = None, start_relay: bool = True) -> FastAPI:
    """
    Build the FastAPI application.

    With no ``context`` the collaborators are wired from settings on startup.
    A prebuilt context is used as-is, which is how tests drive the routes.
    """
    app = FastAPI(title="Delivery Service")
    app.state.context = context

    app.include_router(catalog_router)
    app.include_router(orders_router)
    app.include_router(notifications_router)
    app.include_router(health_router)

    @app.exception_handler(DeliveryError)
    async def delivery_error_handler(request: Request, exc: DeliveryError):
        return JSONResponse(status_code=exc.http_status, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "Invalid request", "detail": jsonable_encoder(exc.errors())})

    @app.on_event("startup")
    async def startup_event():
        """
        - Wires the AppContext unless one was supplied.
        - Starts the publisher and the notification relay task.
        """
        if app.state.context is None:
            app.state.context = build_context()
        await app.state.context.start(start_relay=start_relay)

    @app.on_event("shutdown")
    async def shutdown_event():
        if app.state.context is not None:
            await app.state.context.stop()

    return app


app = create_app()


def run():
    settings = get_settings()
    uvicorn.run(
        "delivery.main:app",
        host=settings.app.host,
        port=settings.app.port,
        log_level=settings.app.log_level.lower(),
    )


if __name__ == "__main__":
    run()
