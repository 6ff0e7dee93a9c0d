"""FastAPI application entrypoint. No business logic; only wiring, middleware and error mapping."""

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bastion.api.v1 import router as v1_router
from bastion.core.config import settings
from bastion.core.exceptions import BastionError
from bastion.core.logging import configure_logging

configure_logging(settings)

app = FastAPI(
    title="Bastion API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.APP_ENV == "dev" else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BastionError)
async def bastion_error_handler(request: Request, exc: BastionError) -> JSONResponse:
    """Map typed service errors to their HTTP status with a {'detail': message} body."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(v1_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
def root() -> dict[str, str]:
    """Root route; minimal payload for discovery."""
    return {"message": "Bastion API"}
