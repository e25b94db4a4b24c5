import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.routes.health import router as health_router
from app.api.routes.internal_referrals import router as internal_referrals_router
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.economy.referrals.errors import ReferralError


async def _referral_error_handler(_request: Request, exc: ReferralError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content={"detail": {"code": exc.code, "message": str(exc)}},
    )


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level, json_logs=settings.app_env != "dev")

    app = FastAPI(
        title="Referral Ledger API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.add_exception_handler(ReferralError, _referral_error_handler)
    app.include_router(health_router)
    app.include_router(internal_referrals_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
    )


if __name__ == "__main__":
    run()
