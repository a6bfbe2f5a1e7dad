from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .config import settings
from .errors import WorkflowError
from .routers import drobilka as drobilka_router
from .routers import recycling as recycling_router
from .routers import scraps as scraps_router
import logging
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette import status
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("scrapline")

app = FastAPI(title="Scrap Recycling API", version="0.1.0")

@app.exception_handler(WorkflowError)
async def workflow_exception_handler(request: Request, exc: WorkflowError):
    # the code lets clients tell "no active batch" apart from "hard line not done"
    logger.info("%s %s rejected: %s %s", request.method, request.url.path, exc.code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # a short message + the full list (useful in dev)
    errors = exc.errors()
    first = errors[0] if errors else {}
    friendly = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": friendly, "code": "VALIDATION_ERROR", "errors": jsonable_errors(errors)},
    )

def jsonable_errors(errors) -> list[dict]:
    # pydantic puts the raised ValueError into ctx, which JSONResponse cannot encode
    out = []
    for e in errors:
        e = dict(e)
        if "ctx" in e:
            e["ctx"] = {k: str(v) for k, v in e["ctx"].items()}
        e.pop("input", None)
        out.append(e)
    return out

@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    # do not leak the internal message to the client
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An internal error occurred. Please try again."},
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,   # must be explicit when allow_credentials=True
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/healthz")
def healthz():
    return {"status": "ok"}

app.include_router(scraps_router.router)
app.include_router(recycling_router.router)
app.include_router(drobilka_router.router)
