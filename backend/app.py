# app.py
import logging
import os

from fastapi import FastAPI, UploadFile, File, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

import png_read as pr
import sd_params
from organize_png_meta import organize_meta

logger = logging.getLogger("uvicorn.error")

CORS_ORIGINS = [
    o.strip()
    for o in os.environ.get("PNG_PARAMS_CORS_ORIGINS", "http://localhost:5173").split(",")  # Vite default
    if o.strip()
]
MAX_UPLOAD_BYTES = int(os.environ.get("PNG_PARAMS_MAX_UPLOAD", 32 * 1024 * 1024))

ERROR_KINDS = (
    (pr.InvalidSignatureError, "signature"),
    (pr.MalformedContainerError, "malformed"),
    (pr.IntegrityError, "integrity"),
)

app = FastAPI()

# Allow your Vite dev server to call the API during development
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_kind(exc: pr.PNGError) -> str:
    for cls, kind in ERROR_KINDS:
        if isinstance(exc, cls):
            return kind
    return "malformed"


@app.post("/analyze")
async def analyze_image(file: UploadFile = File(...)):
    # one byte past the limit is enough to tell the upload is too large
    data = await file.read(MAX_UPLOAD_BYTES + 1)
    if len(data) > MAX_UPLOAD_BYTES:
        logger.warning("rejected %s: larger than %d bytes", file.filename, MAX_UPLOAD_BYTES)
        return JSONResponse(status_code=413, content={"error": f"Upload larger than {MAX_UPLOAD_BYTES} bytes."})

    if not pr.is_png(data):
        return JSONResponse(status_code=415, content={"error": "Please upload a PNG (.png) image."})

    try:
        meta = pr.read_image_from_bytes(data, name=file.filename)
    except pr.PNGError as e:
        kind = error_kind(e)
        logger.warning("rejected %s (%s): %s", file.filename, kind, e)
        return JSONResponse(status_code=422, content={"error": str(e), "kind": kind})

    return organize_meta(meta)


@app.post("/parameters")
async def parse_parameters(request: Request):
    body = await request.body()
    return sd_params.parse_parameters(body.decode("utf-8", "replace"))


if __name__ == "__main__":
    uvicorn.run(
        "app:app",
        host=os.environ.get("PNG_PARAMS_HOST", "0.0.0.0"),
        port=int(os.environ.get("PNG_PARAMS_PORT", 8000)),
        reload=True,
    )
