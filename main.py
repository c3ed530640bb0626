import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from database import init_db
from logging_config import configure_logging
from api.admin import router as admin_router
from api.applications import router as applications_router
from api.banker import router as banker_router
from api.connector import router as connector_router
from api.customers import router as customers_router
from api.operator import router as operator_router
from services.exceptions import MarketplaceError
from utils.serialization import to_jsonable

logger = logging.getLogger("marketplace.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await init_db()
    logger.info("startup complete", extra={"database": settings.database_url.split(":")[0]})
    yield


app = FastAPI(
    title=settings.app_name,
    description="Loan origination marketplace: connectors, operators, banks and commissions",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    level = logging.WARNING if exc.http_status >= 409 else logging.INFO
    logger.log(level, exc.message, extra={"code": exc.code, "path": request.url.path})
    return JSONResponse(status_code=exc.http_status, content=to_jsonable(exc.to_dict()))


app.include_router(applications_router)
app.include_router(customers_router)
app.include_router(operator_router)
app.include_router(banker_router)
app.include_router(admin_router)
app.include_router(connector_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
