"""
SpanLens API — Main Application

POST /api/analyze   — Run the upstream classifier, return canonical findings
POST /api/highlight — Validate findings and render the highlight layer
GET  /api/palette   — Category colors, severity weights, CSS variables
GET  /health        — Health check
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.requests import Request

from spanlens import __version__
from spanlens.analyzer import analyze_text
from spanlens.cache import analysis_cache
from spanlens.colors import (
    CATEGORY_OKLCH,
    SEVERITY_WEIGHT,
    category_rgb,
    theme_variables,
)
from spanlens.config import settings
from spanlens.errors import ContractViolation
from spanlens.llm import LLMProvider
from spanlens.llm.factory import get_provider
from spanlens.logging import get_logger, setup_logging
from spanlens.renderer import relocate, render, to_html
from spanlens.resolver import CANONICAL, PARTITION, canonicalize, filter_categories, resolve
from spanlens.schemas.analysis import (
    AnalyzeRequest,
    AnalyzeResponse,
    HealthResponse,
    HighlightRequest,
    HighlightResponse,
    PaletteResponse,
)
from spanlens.validator import normalize_newlines, validate

logger = get_logger("api")


# ============================================================
# STARTUP / SHUTDOWN
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("SpanLens API starting")
    yield
    logger.info("SpanLens API shutting down")


app = FastAPI(
    title="SpanLens API",
    description="Validation, overlap resolution and rendering for classifier highlights",
    version=__version__,
    lifespan=lifespan,
)

# CORS: set SPANLENS_CORS_ORIGINS in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",")],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
    allow_credentials=False,
)


@app.get("/", include_in_schema=False)
async def root():
    return JSONResponse({"message": "SpanLens API", "docs": "/docs"})


# ============================================================
# ERROR HANDLERS
# ============================================================

@app.exception_handler(ContractViolation)
async def contract_violation_handler(request: Request, exc: ContractViolation):
    logger.warning(
        "Contract violation",
        extra={"error": str(exc), "path": request.url.path, "method": request.method},
    )
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def global_error_handler(request: Request, exc: Exception):
    """Catch unhandled exceptions — return structured error, don't leak internals."""
    logger.error(
        f"Unhandled exception: {type(exc).__name__}",
        extra={"error": str(exc), "path": request.url.path, "method": request.method},
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error."},
    )


# Lazy LLM provider
_llm: Optional[LLMProvider] = None


def get_llm() -> LLMProvider:
    global _llm
    if _llm is None:
        _llm = get_provider(settings.LLM_PROVIDER)
    return _llm


# ============================================================
# ROUTES
# ============================================================

@app.post("/api/analyze", response_model=AnalyzeResponse)
async def analyze(request: AnalyzeRequest, llm: LLMProvider = Depends(get_llm)):
    """Classify text upstream and return the canonical findings."""
    if not request.text.strip():
        raise HTTPException(400, "Missing 'text'")

    text = normalize_newlines(request.text)
    settings_key = request.settings.cache_key()

    cached = await analysis_cache.get(text, settings_key)
    if cached:
        return cached

    start = time.time()
    result = await analyze_text(text, llm, request.settings)

    if "error" in result:
        logger.error(
            "Classifier error during analysis",
            extra={"error": result["error"]},
        )
        raise HTTPException(502, "Analysis failed. The classifier is unavailable.")

    await analysis_cache.put(text, settings_key, result)

    duration = int((time.time() - start) * 1000)
    logger.info(
        f"Analysis complete: {len(result['findings'])} findings",
        extra={
            "findings_count": len(result["findings"]),
            "dropped": result["dropped_count"],
            "duration_ms": duration,
        },
    )
    return result


@app.post("/api/highlight", response_model=HighlightResponse)
async def highlight(request: HighlightRequest):
    """Validate findings against the text and build the highlight layer."""
    text = normalize_newlines(request.text)

    if request.fuzzy:
        findings = relocate(text, request.findings)
    else:
        findings = validate(text, request.findings)

    visible = filter_categories(findings, request.enabled_categories)
    if request.mode == CANONICAL:
        visible = canonicalize(visible)

    # visible is already canonical; partition exactly that set
    segments = resolve(text, visible, PARTITION)
    runs = render(text, segments)

    return {
        "findings": [f.to_json() for f in visible],
        "segments": [
            {
                "start": s.start,
                "end": s.end,
                "annotation_ids": [a.id for a in s.covering],
                "primary_id": s.primary.id if s.primary else None,
            }
            for s in segments
        ],
        "runs": [r.to_json() for r in runs],
        "html": to_html(runs, request.selected_id),
        "dropped_count": len(request.findings) - len(findings),
    }


@app.get("/api/palette", response_model=PaletteResponse)
async def palette():
    """Category colors as OKLCH and sRGB, plus severity weights."""
    categories = {}
    for name, (L, C, h) in CATEGORY_OKLCH.items():
        r, g, b = category_rgb(name)
        categories[name] = {"oklch": [L, C, h], "rgb": [r, g, b]}
    return {
        "categories": categories,
        "severity_weights": dict(SEVERITY_WEIGHT),
        "alpha_cap": settings.ALPHA_CAP,
        "css_variables": theme_variables(),
    }


@app.get("/health", response_model=HealthResponse)
async def health():
    return {
        "status": "operational",
        "version": __version__,
        "llm_provider": settings.LLM_PROVIDER,
        "cache": analysis_cache.stats,
    }


# --- Version + Security Headers Middleware ---
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-SpanLens-Version"] = __version__
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


# --- Request Logging Middleware ---
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request with method, path, status, duration."""
    path = request.url.path
    if path == "/health":
        return await call_next(request)

    start = time.time()
    response = await call_next(request)
    duration_ms = round((time.time() - start) * 1000, 1)

    logger.info(
        f"{request.method} {path} → {response.status_code} ({duration_ms}ms)",
        extra={
            "method": request.method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        },
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host=settings.HOST, port=settings.PORT)
