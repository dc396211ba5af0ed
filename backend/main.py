from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from backend.api import chat, community, profiles
from backend.core.config import settings
from backend.core.database import init_models
from backend.utils.logger import init_logging, get_logger, set_request_id, clear_request_id
import uuid

# Initialize logging
init_logging()
logger = get_logger("backend.main")

app = FastAPI(
    title=settings.app_name
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request ID middleware for request tracing
@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = str(uuid.uuid4())[:8]
    set_request_id(request_id)
    logger.info("Request started", extra={
        "method": request.method,
        "path": request.url.path,
    })
    try:
        response = await call_next(request)
        logger.info("Request completed", extra={"status_code": response.status_code})
        response.headers["X-Request-ID"] = request_id
        return response
    except Exception as e:
        logger.error("Request failed", extra={"error": str(e)})
        raise
    finally:
        clear_request_id()

# Routes
app.include_router(chat.router)
app.include_router(community.router)
app.include_router(profiles.router)

@app.get("/health")
def health_check():
    return {"status": "healthy", "service": "backend"}

@app.on_event("startup")
async def startup_event():
    await init_models()
    logger.info("Backend server started, database tables ready")

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Backend server shutting down")
