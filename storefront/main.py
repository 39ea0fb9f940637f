import logging
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from storefront.backend.config import settings
from storefront.exceptions import StoreError
from storefront.routers import brand, promotion

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="Storefront promotions")

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code >= 500:
        logger.error(f"Error on {request.url}: {exc.detail}")
    content = {"error": exc.detail, **getattr(exc, "extra", {})}
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(content), headers=exc.headers)

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation error on {request.url}: {exc}")
    return JSONResponse(status_code=400, content={"error": "Invalid request data"})

@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    logger.error(f"Value error on {request.url}: {exc}")
    return JSONResponse(status_code=400, content={"error": str(exc)})

@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"Data store error on {request.url}")
    error = StoreError(f"{StoreError.default_detail}: {exc.__class__.__name__}: {exc}")
    return JSONResponse(status_code=error.status_code, content={"error": error.detail})

app.include_router(promotion.router)
app.include_router(brand.router)

@app.get("/api/ping")
def ping():
    return {"status": "ok"}

def main():
    host, port = settings.SERVER_ADDRESS.split(":")
    uvicorn.run(app, host=host, port=int(port))

if __name__ == "__main__":
    main()
