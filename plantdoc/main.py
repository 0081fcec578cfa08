import logging

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from plantdoc.config import get_settings
from plantdoc.errors import AssetLoadError, ErrorKind, PlantDocError
from plantdoc.schemas import DetectionResult, ErrorResponse, HealthResponse
from plantdoc.service import DetectionService

logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Plant Disease Detector API", version="1.0.0")
_service = DetectionService()

_STATUS_BY_KIND = {
    ErrorKind.DECODE: 400,
    ErrorKind.MODEL_NOT_LOADED: 503,
    ErrorKind.ASSET_LOAD: 503,
    ErrorKind.INFERENCE: 500,
}


@app.on_event("startup")
def startup():
    try:
        _service.start()
        logger.info("Model loaded successfully")
    except AssetLoadError as e:
        logger.exception("Model failed to load: %s", e)
        # With require_model off the app stays up to report diagnostics on /health
        if _service.settings.require_model:
            raise


@app.on_event("shutdown")
def shutdown():
    _service.close()


@app.exception_handler(PlantDocError)
async def plantdoc_error_handler(request: Request, exc: PlantDocError):
    status = _STATUS_BY_KIND.get(exc.kind, 500)
    if status >= 500:
        logger.error("%s failed: %s", request.url.path, exc)
    body = ErrorResponse(detail=exc.message, kind=exc.kind.value, context=exc.context)
    return JSONResponse(status_code=status, content=body.model_dump(mode="json"))


@app.get("/health", response_model=HealthResponse)
def health():
    if _service.model_loaded:
        return HealthResponse(
            status="ok",
            model_loaded=True,
            labels_loaded=bool(_service.labels),
            label_error=_service.label_error,
        )
    return HealthResponse(
        status="ok",
        model_loaded=False,
        model_error=_service.load_error,
        model_diagnostics=_service.diagnostics(),
    )


@app.post("/predict", response_model=DetectionResult)
async def predict_endpoint(file: UploadFile = File(...)):
    raw = await file.read()
    # Decode and inference block, and the model lock serializes them
    return await run_in_threadpool(_service.detect, raw)
