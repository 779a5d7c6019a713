from __future__ import annotations

import base64
import io
import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

import matplotlib
matplotlib.use("Agg")  # must come before Figure import

from matplotlib.figure import Figure

from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from violinplot.builder import ViolinResult, violinplot
from violinplot.errors import ViolinError
from violinplot.parsing import groups_from_inline_texts, groups_from_table_text
from violinplot.sample_data import SAMPLE_LABELS, make_sample_groups
from violinplot.spec import ViolinSpec

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


# -----------------------
# Request models
# -----------------------

class RenderRequest(BaseModel):
    # one list per group, nulls are missing values
    groups: Optional[List[List[Optional[float]]]] = None
    # or one pasted vector per group
    group_texts: Optional[List[str]] = None
    # or a pasted table with a header row, one column per group
    table_text: Optional[str] = None

    options: Dict[str, Any] = Field(default_factory=dict)

    format: Literal["png", "jpg", "pdf", "svg"] = "png"
    dpi: int = Field(150, ge=72, le=1200)
    jpg_quality: int = Field(95, ge=1, le=95)


# -----------------------
# App creation
# -----------------------

app = FastAPI(title="Violin Plot Service")


# -----------------------
# Middleware: max body size
# -----------------------

class MaxBodySizeMiddleware:
    def __init__(self, app: ASGIApp, max_bytes: int) -> None:
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        received = 0

        async def limited_receive() -> dict:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                body = message.get("body", b"") or b""
                received += len(body)
                if received > self.max_bytes:
                    response = PlainTextResponse("Request body too large", status_code=413)
                    await response(scope, receive, send)
                    return {"type": "http.disconnect"}
            return message

        await self.app(scope, limited_receive, send)


app.add_middleware(MaxBodySizeMiddleware, max_bytes=5_000_000)


# -----------------------
# Middleware: rate limiting
# -----------------------

limiter = Limiter(key_func=get_remote_address, default_limits=["120/minute"])
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


# -----------------------
# Helpers
# -----------------------

def _parse_spec(options: Dict[str, Any]) -> ViolinSpec:
    try:
        return ViolinSpec.from_dict(options)
    except ViolinError as e:
        raise HTTPException(status_code=400, detail=f"Invalid options: {type(e).__name__}: {e}")


def _request_data(req: RenderRequest) -> Any:
    given = [v for v in (req.groups, req.group_texts, req.table_text) if v is not None]
    if len(given) > 1:
        raise HTTPException(status_code=400, detail="Send only one of groups, group_texts or table_text.")
    if req.groups is not None:
        return req.groups
    if req.group_texts is not None:
        try:
            return groups_from_inline_texts(req.group_texts)
        except ViolinError as e:
            raise HTTPException(status_code=400, detail=f"Invalid group text: {e}")
    if req.table_text is not None:
        try:
            table, labels = groups_from_table_text(req.table_text)
        except ViolinError as e:
            raise HTTPException(status_code=400, detail=f"Invalid table: {e}")
        return {label: table[:, j] for j, label in enumerate(labels)}

    # no data: demo groups
    table = make_sample_groups()
    return {label: table[:, j] for j, label in enumerate(SAMPLE_LABELS)}


def _render(req: RenderRequest) -> tuple[bytes, str, Dict[str, Any]]:
    spec = _parse_spec(req.options)
    data = _request_data(req)

    fig = Figure()
    try:
        ax = fig.add_subplot(111)
        try:
            result = violinplot(data, spec, ax=ax)
        except ViolinError as e:
            raise HTTPException(status_code=400, detail=f"{type(e).__name__}: {e}")

        fmt = req.format.lower()
        buf = io.BytesIO()

        save_kwargs: Dict[str, Any] = {"bbox_inches": "tight"}
        if fmt in ("png", "jpg"):
            save_kwargs["dpi"] = int(req.dpi)
        if fmt == "jpg":
            save_kwargs["format"] = "jpeg"
            save_kwargs["pil_kwargs"] = {"quality": int(req.jpg_quality)}
        else:
            save_kwargs["format"] = fmt

        fig.savefig(buf, **save_kwargs)

        mime = {
            "png": "image/png",
            "jpg": "image/jpeg",
            "pdf": "application/pdf",
            "svg": "image/svg+xml",
        }[fmt]

        return buf.getvalue(), mime, _result_summary(result)

    finally:
        fig.clear()


def _result_summary(result: ViolinResult) -> Dict[str, Any]:
    return {
        "centers": result.build.centers.tolist(),
        "means": result.means.tolist(),
        "medians": result.medians.tolist(),
        "bandwidths": result.bandwidths.tolist(),
        "mean_extrapolated": [s.mean_extrapolated for s in result.summaries],
        "median_extrapolated": [s.median_extrapolated for s in result.summaries],
        "xlim": list(result.build.xlim),
        "ylim": list(result.build.ylim),
        "legend": [t.get_text() for t in result.legend.get_texts()] if result.legend is not None else [],
    }


# -----------------------
# Routes
# -----------------------

@app.get("/health")
def health():
    return {"ok": True}


@app.post("/render")
@limiter.limit("20/minute")
def render(request: Request, req: RenderRequest):
    try:
        payload, mime, _ = _render(req)
        return Response(content=payload, media_type=mime)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Render failed")
        raise HTTPException(status_code=500, detail=f"Render failed: {type(e).__name__}: {e}")


@app.post("/render_json")
@limiter.limit("20/minute")
def render_json(request: Request, req: RenderRequest):
    try:
        payload, mime, summary = _render(req)
        return JSONResponse(
            {
                "mime": mime,
                "format": req.format.lower(),
                "payload_base64": base64.b64encode(payload).decode("ascii"),
                "summary": summary,
            }
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Render failed")
        raise HTTPException(status_code=500, detail=f"Render failed: {type(e).__name__}: {e}")
