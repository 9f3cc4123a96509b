"""FastAPI application exposing the transcoding tools over HTTP."""

from __future__ import annotations

from typing import Any, List

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.responses import HTMLResponse, JSONResponse, Response

from pdf_transcoder import TranscodeOptions, TranscodeResult, __version__, run_tool
from pdf_transcoder.exceptions import DocumentOpenError, InvalidPageRangeError, user_message
from pdf_transcoder.tools import SourceFile
from pdf_transcoder.utils import get_logger, safe_filename, safe_stem, zip_artifacts

LOGGER = get_logger("pdf_transcoder.api")

app = FastAPI(title="PDF Transcoder API", version=__version__)
DOCS_PREFIX = "/api"
TRUNCATED_HEADER = "X-Transcoder-Truncated"
PAGES_HEADER = "X-Transcoder-Pages"


async def _read_upload(upload: UploadFile, default: str) -> SourceFile:
    """Read an uploaded file into memory, rejecting empty uploads."""

    contents = await upload.read()
    if not contents:
        raise HTTPException(status_code=400, detail=f"File '{upload.filename}' is empty.")
    return SourceFile(name=safe_filename(upload.filename, default), data=contents)


def _options(**values: Any) -> TranscodeOptions:
    try:
        return TranscodeOptions.from_mapping(values)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


async def _execute(operation: str, sources: List[SourceFile], options: TranscodeOptions) -> TranscodeResult:
    try:
        result = await run_tool(operation, sources, options)
    except (DocumentOpenError, InvalidPageRangeError) as exc:
        raise HTTPException(status_code=400, detail=user_message(exc)) from exc
    except Exception as exc:
        LOGGER.error("%s request failed: %s", operation, exc)
        raise HTTPException(status_code=500, detail=user_message(exc)) from exc
    if result is None:  # pragma: no cover - every request owns its tool instance
        raise HTTPException(status_code=500, detail="The operation was cancelled.")
    return result


def _respond(result: TranscodeResult, archive_name: str) -> Response:
    """Return the single artifact as-is, or every artifact zipped together."""

    headers = {
        TRUNCATED_HEADER: "true" if result.truncated else "false",
        PAGES_HEADER: str(result.pages_processed),
    }
    if len(result.artifacts) == 1:
        artifact = result.artifacts[0]
        content, media_type, filename = artifact.data, artifact.media_type, artifact.filename
    else:
        content = zip_artifacts((artifact.filename, artifact.data) for artifact in result.artifacts)
        media_type, filename = "application/zip", archive_name
    headers["Content-Disposition"] = f'attachment; filename="{filename}"'
    return Response(content=content, media_type=media_type, headers=headers)


@app.get("/health", response_class=JSONResponse)
async def health() -> dict[str, str]:
    """Lightweight health endpoint for uptime checks."""
    return {"status": "ok"}


@app.get(
    f"{DOCS_PREFIX}/openapi.json",
    include_in_schema=False,
    name="prefixed_openapi",
)
async def prefixed_openapi() -> JSONResponse:
    """Expose the OpenAPI schema under the gateway's ``/api`` prefix."""

    return JSONResponse(app.openapi())


@app.get(f"{DOCS_PREFIX}/docs", include_in_schema=False)
async def prefixed_swagger_ui(request: Request) -> HTMLResponse:
    return get_swagger_ui_html(
        openapi_url=str(request.url_for("prefixed_openapi")),
        title=f"{app.title} - Swagger UI",
    )


@app.post("/merge", summary="Merge PDFs into one raster PDF")
async def merge_documents(
    files: List[UploadFile] = File(..., description="PDF files to merge, in order"),
    scale: float | None = Form(None, description="Render scale against native page size."),
    quality: float | None = Form(None, description="Embedded image quality between 0.1 and 1."),
    grayscale: bool = Form(False),
    max_pages: int | None = Form(None, description="Maximum number of pages across all inputs."),
) -> Response:
    """Merge multiple PDF uploads into a single document."""

    if not files:
        raise HTTPException(status_code=400, detail="At least one PDF must be provided.")
    sources = [await _read_upload(upload, f"document_{index}.pdf") for index, upload in enumerate(files, start=1)]
    options = _options(scale=scale, quality=quality, grayscale=grayscale, max_pages=max_pages)
    return _respond(await _execute("merge", sources, options), "merged.zip")


@app.post(
    "/split",
    summary="Split a PDF by page selection",
    response_description="A PDF, or a zip archive when several files are produced.",
)
async def split_document(
    file: UploadFile = File(..., description="Source PDF to split."),
    pages: str = Form("all", description="Page selection, e.g. 'all' or '1-3,7'."),
    mode: str = Form("range", description="'range', 'pages' or 'chunks'."),
    chunk_size: int | None = Form(None, ge=1, description="Pages per file in chunks mode."),
    max_output_files: int | None = Form(None, ge=1),
    max_pages: int | None = Form(None, ge=1, description="Maximum number of selected pages to render."),
    scale: float | None = Form(None),
    quality: float | None = Form(None),
    grayscale: bool = Form(False),
) -> Response:
    source = await _read_upload(file, "document.pdf")
    options = _options(
        pages=pages,
        split_mode=mode,
        chunk_size=chunk_size,
        max_output_files=max_output_files,
        max_pages=max_pages,
        scale=scale,
        quality=quality,
        grayscale=grayscale,
    )
    result = await _execute("split", [source], options)
    return _respond(result, f"{source.stem}_split.zip")


@app.post("/compress", summary="Re-render a PDF at lower resolution")
async def compress_document(
    file: UploadFile = File(..., description="Source PDF to compress."),
    scale: float = Form(1.0),
    quality: float = Form(0.6),
    grayscale: bool = Form(False),
    max_pages: int | None = Form(None),
) -> Response:
    source = await _read_upload(file, "document.pdf")
    options = _options(scale=scale, quality=quality, grayscale=grayscale, max_pages=max_pages)
    return _respond(await _execute("compress", [source], options), f"{source.stem}_compressed.zip")


@app.post(
    "/convert/pdf-to-images",
    summary="Render PDF pages to images",
    response_description="The image, or a zip archive of one image per page.",
)
async def convert_pdf_to_images(
    file: UploadFile = File(..., description="Source PDF to render."),
    pages: str = Form("all"),
    image_format: str = Form("jpeg", description="'jpeg', 'png' or 'webp'."),
    scale: float | None = Form(None),
    quality: float | None = Form(None),
    grayscale: bool = Form(False),
    max_pages: int | None = Form(None),
) -> Response:
    source = await _read_upload(file, "document.pdf")
    options = _options(
        pages=pages,
        image_format=image_format,
        scale=scale,
        quality=quality,
        grayscale=grayscale,
        max_pages=max_pages,
    )
    result = await _execute("pdf-to-images", [source], options)
    return _respond(result, f"{source.stem}_images.zip")


@app.post("/convert/pdf-to-text", summary="Extract text from PDF pages")
async def convert_pdf_to_text(
    file: UploadFile = File(..., description="Source PDF to read."),
    pages: str = Form("all"),
    text_format: str = Form("txt", description="'txt' or 'docx'."),
    include_headings: bool = Form(True),
    max_pages: int | None = Form(None),
) -> Response:
    source = await _read_upload(file, "document.pdf")
    options = _options(
        pages=pages, text_format=text_format, include_headings=include_headings, max_pages=max_pages
    )
    return _respond(await _execute("pdf-to-text", [source], options), f"{source.stem}_text.zip")


@app.post("/convert/images-to-pdf", summary="Combine images into a PDF")
async def convert_images_to_pdf(
    files: List[UploadFile] = File(..., description="Images, one per output page."),
    page_size: str = Form("fit", description="'fit', 'a4', 'letter' or 'legal'."),
    orientation: str = Form("auto"),
    margin_mm: float = Form(0.0),
    target_dpi: float | None = Form(None),
    quality: float | None = Form(None),
    grayscale: bool = Form(False),
    max_pages: int | None = Form(None),
) -> Response:
    if not files:
        raise HTTPException(status_code=400, detail="At least one image must be provided.")
    sources = [await _read_upload(upload, f"image_{index}") for index, upload in enumerate(files, start=1)]
    options = _options(
        page_size=page_size,
        orientation=orientation,
        margin_mm=margin_mm,
        target_dpi=target_dpi,
        quality=quality,
        grayscale=grayscale,
        max_pages=max_pages,
    )
    result = await _execute("images-to-pdf", sources, options)
    return _respond(result, f"{safe_stem(sources[0].name, 'images')}.zip")


__all__ = ["app"]
