import logging
from pathlib import Path

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import HTMLResponse, PlainTextResponse, Response
from fastapi.templating import Jinja2Templates

from csrf_sync.core.csrf import CsrfSync


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parents[1] / "templates"))

logger = logging.getLogger("csrf_sync.demo")


def _guard(request: Request) -> CsrfSync:
    return request.app.state.csrf


async def require_csrf(request: Request) -> None:
    await _guard(request).csrf_synchronised_protection(request)


async def require_form_csrf(request: Request) -> None:
    await request.app.state.csrf_form.csrf_synchronised_protection(request)


router = APIRouter(tags=["Demo"])
protected_router = APIRouter(tags=["Demo"], dependencies=[Depends(require_csrf)])


def _render_form(request: Request, message: str | None = None) -> HTMLResponse:
    context = {
        "title": request.app.title,
        "csrf_field": request.app.state.csrf_form_field,
        "csrf_token": request.state.csrf_token(),
        "message": message,
    }
    return templates.TemplateResponse(request, "demo/form.html", context)


@router.get("/csrf-token", response_class=PlainTextResponse)
def csrf_token(request: Request):
    return _guard(request).generate_token(request)


@router.get("/hello", response_class=PlainTextResponse)
def hello():
    return "Hello World!"


@protected_router.api_route("/csrf-token-test", methods=["GET", "POST"], response_class=PlainTextResponse)
def csrf_token_test():
    return "Test endpoint..."


@protected_router.post("/csrf-token/revoke", status_code=status.HTTP_204_NO_CONTENT)
def revoke_csrf_token(request: Request):
    _guard(request).revoke_token(request)
    logger.info("csrf_token_revoke_requested", extra={"path": request.url.path})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@protected_router.get("/form", response_class=HTMLResponse)
def form_page(request: Request):
    return _render_form(request)


@router.post("/form", response_class=HTMLResponse, dependencies=[Depends(require_form_csrf)])
async def form_submit(request: Request):
    # Read after the guard so an unparseable body is rejected as a CSRF failure, not a 400.
    form = await request.form()
    message = form.get("message")
    return _render_form(request, message=message if isinstance(message, str) else "")
