import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from portal.core.config import settings
from portal.core.errors import PortalError
from portal.db.base import Base
from portal.db.session import engine
from portal.routers import auth, leave, overtime, payroll, assets, cron, notifications

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)

@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    logger.info("%s %s rejected: %s (%s)", request.method, request.url.path, exc.message, exc.code)
    return JSONResponse(status_code=400, content={"detail": exc.message, "code": exc.code})

@app.get("/")
async def read_root():
    return {"name": settings.PROJECT_NAME, "status": "ok"}

app.include_router(auth.router)
app.include_router(leave.router)
app.include_router(overtime.router)
app.include_router(payroll.router)
app.include_router(assets.router)
app.include_router(notifications.router)
app.include_router(cron.router)

# Create tables on startup (Simple approach)
@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
