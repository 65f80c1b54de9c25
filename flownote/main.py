import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from flownote import config
from flownote.database.connection import close_mongo_connection, connect_to_mongo, get_database
from flownote.routers.auth import router as auth_router
from flownote.routers.conversations import router as conversations_router
from flownote.routers.devices import router as devices_router
from flownote.routers.events import router as events_router
from flownote.routers.files import router as files_router
from flownote.routers.live import router as live_router
from flownote.routers.prints import router as prints_router
from flownote.routers.users import router as users_router
from flownote.utils.exceptions import BlobStoreError, DocumentDecodeError, ForbiddenError, NotFoundError
from flownote.utils.realtime_bus import close_bus


logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

RETRY_DETAIL = "The service is temporarily unavailable. Please try again."


@asynccontextmanager
async def lifespan(app: FastAPI):

    await connect_to_mongo()
    try:
        yield
    finally:
        await close_bus()
        await close_mongo_connection()


app = FastAPI(title="FlowNote API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValueError)
async def validation_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ForbiddenError)
async def forbidden_handler(request: Request, exc: ForbiddenError):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(DocumentDecodeError)
async def decode_error_handler(request: Request, exc: DocumentDecodeError):
    logger.error("Refusing malformed document: %s", exc)
    return JSONResponse(status_code=500, content={"detail": "Stored data could not be read."})


@app.exception_handler(BlobStoreError)
async def blob_store_error_handler(request: Request, exc: BlobStoreError):
    logger.error("File storage failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=503, content={"detail": RETRY_DETAIL})


@app.exception_handler(PyMongoError)
async def database_error_handler(request: Request, exc: PyMongoError):
    logger.error("Database failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=503, content={"detail": RETRY_DETAIL})


app.include_router(auth_router)
app.include_router(users_router)
app.include_router(devices_router)
app.include_router(conversations_router)
app.include_router(prints_router)
app.include_router(events_router)
app.include_router(files_router)
app.include_router(live_router)


@app.get("/")
async def root():

    db = get_database()
    collections = await db.list_collection_names()
    return {"message": "FlowNote API is running", "collections": collections}
