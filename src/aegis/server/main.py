import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..core.errors import VaultError
from .config import settings
from .database import init_db
from .routers import auth, vault

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
)


@app.on_event("startup")
def on_startup():
    if settings.uses_default_secret:
        logger.warning("SECRET_KEY is the development default; set it before real use")
    init_db()


# Every failure reaches the shell as one opaque message. The exception
# class decides the status code; the internal detail only goes to the log.
@app.exception_handler(VaultError)
async def handle_vault_error(request: Request, exc: VaultError):
    logger.info("%s on %s: %s", exc.__class__.__name__, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def handle_bad_request(request: Request, exc: RequestValidationError):
    logger.info("Malformed request on %s", request.url.path)
    return JSONResponse(status_code=422, content={"error": "Invalid request"})


app.include_router(auth.router, prefix="/commands", tags=["Authentication"])

app.include_router(vault.router, prefix="/commands", tags=["Vault"])


@app.get("/")
def root():
    return {"message": "Aegis vault core is running"}
