"""
Onboarding Routes - Web UI and JSON API for the Four-Step Form

HTML screens post whole steps and redirect back (POST/redirect/GET).
The JSON API applies single field changes so the page can refresh inline
errors and button states while the user types.

Each browser session is bound to one FormWizard through a signed cookie.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Literal, Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import FormData

from core.onboarding import (
    SERVICE_OPTIONS,
    STEP_FIELDS,
    ChangeEvent,
    ControlKind,
    FormWizard,
    WizardBusyError,
    WizardSession,
    get_record_store,
    get_session_repository,
)
from utils.config import Config
from utils.formatting import format_progress, format_yes_no
from web.session_cookie import (
    clear_session_cookie,
    read_session_id,
    set_session_cookie,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Router Setup
# =============================================================================

TEMPLATES_DIR = Path(__file__).parent / "templates"

router = APIRouter(prefix="/onboarding", tags=["onboarding"])
templates = Jinja2Templates(directory=TEMPLATES_DIR)
templates.env.filters["yes_no"] = format_yes_no


class ChangeEventPayload(BaseModel):
    """Request body for a single input change."""

    name: str
    value: Any = ""
    kind: Literal["text", "toggle"] = "text"
    checked: bool = False

    def to_event(self) -> ChangeEvent:
        return ChangeEvent(
            name=self.name,
            value=self.value,
            kind=ControlKind(self.kind),
            checked=self.checked,
        )


# =============================================================================
# Session Helpers
# =============================================================================


def get_wizard_session(request: Request) -> WizardSession:
    """Get (or start) the wizard bound to this request's session cookie."""
    repo = get_session_repository(Config.load().session_idle_minutes)
    return repo.get_or_create(read_session_id(request))


def _redirect(session: WizardSession) -> RedirectResponse:
    response = RedirectResponse(url="/onboarding/", status_code=303)
    set_session_cookie(response, session.session_id)
    return response


def _json(session: WizardSession, extra: Optional[dict] = None) -> JSONResponse:
    wizard = session.wizard
    body = wizard.snapshot()
    # Notices are shown once
    wizard.pop_notice()
    if extra:
        body.update(extra)
    response = JSONResponse(body)
    set_session_cookie(response, session.session_id)
    return response


@contextmanager
def _wizard_idle() -> Iterator[None]:
    """Map changes attempted during a submission to 409 Conflict."""
    try:
        yield
    except WizardBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))


def _apply_change(wizard: FormWizard, event: ChangeEvent) -> None:
    try:
        wizard.handle_change(event)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def apply_step_form(wizard: FormWizard, form: FormData) -> None:
    """
    Apply the posted fields of the current step as change events.

    Ignored when the form was rendered for a different step (stale page).
    Unchecked checkboxes are absent from a form post, so toggles are
    derived from presence.
    """
    if form.get("step") != str(wizard.step):
        logger.debug("Ignoring stale form for step %s", form.get("step"))
        return

    for name in STEP_FIELDS[wizard.step]:
        if name == "services":
            selected = set(form.getlist("services"))
            options = list(SERVICE_OPTIONS) + [
                s for s in wizard.state.services if s not in SERVICE_OPTIONS
            ]
            for option in options:
                _apply_change(wizard, ChangeEvent.toggle("services", option in selected, option))
        elif name == "accepted":
            _apply_change(wizard, ChangeEvent.toggle("accepted", "accepted" in form))
        elif name in form:
            _apply_change(wizard, ChangeEvent.text(name, form[name]))


# =============================================================================
# HTML Screens
# =============================================================================


@router.get("/", response_class=HTMLResponse)
async def wizard_page(request: Request):
    """Render the current step of the onboarding form."""
    session = get_wizard_session(request)
    wizard = session.wizard

    response = templates.TemplateResponse(
        request,
        "onboarding_wizard.html",
        {
            "wizard": wizard,
            "data": wizard.state,
            "errors": wizard.errors,
            "step_fields": STEP_FIELDS[wizard.step],
            "service_options": SERVICE_OPTIONS,
            "progress": format_progress(wizard.step, wizard.total_steps),
            "notice": wizard.pop_notice(),
        },
    )
    set_session_cookie(response, session.session_id)
    return response


@router.post("/step")
async def post_step(request: Request):
    """Apply a step's fields, then go to the next or previous step."""
    session = get_wizard_session(request)
    wizard = session.wizard
    form = await request.form()

    action = form.get("action", "next")
    if action not in ("next", "back"):
        raise HTTPException(status_code=400, detail=f"Invalid action: {action}")

    with _wizard_idle():
        apply_step_form(wizard, form)
        if action == "back":
            wizard.back()
        else:
            wizard.next()

    return _redirect(session)


@router.post("/submit")
async def post_submit(request: Request):
    """Apply the confirmation step and save the form."""
    session = get_wizard_session(request)
    wizard = session.wizard
    form = await request.form()

    with _wizard_idle():
        apply_step_form(wizard, form)
        if form.get("action") == "back":
            wizard.back()
            return _redirect(session)

    await run_in_threadpool(wizard.submit, get_record_store())
    return _redirect(session)


@router.post("/reset")
async def post_reset(request: Request):
    """Discard this session's form and start over."""
    session_id = read_session_id(request)
    if session_id:
        get_session_repository(Config.load().session_idle_minutes).discard(session_id)

    response = RedirectResponse(url="/onboarding/", status_code=303)
    clear_session_cookie(response)
    return response


# =============================================================================
# JSON API
# =============================================================================


@router.get("/api/state")
async def api_state(request: Request):
    """Current wizard snapshot."""
    return _json(get_wizard_session(request))


@router.post("/api/change")
async def api_change(request: Request, payload: ChangeEventPayload):
    """Apply one input change and return the revalidated snapshot."""
    session = get_wizard_session(request)
    with _wizard_idle():
        _apply_change(session.wizard, payload.to_event())
    return _json(session)


@router.post("/api/next")
async def api_next(request: Request):
    """Advance if the current step passes its gate."""
    session = get_wizard_session(request)
    with _wizard_idle():
        advanced = session.wizard.next()
    return _json(session, {"advanced": advanced})


@router.post("/api/back")
async def api_back(request: Request):
    """Go back one step without validation."""
    session = get_wizard_session(request)
    with _wizard_idle():
        session.wizard.back()
    return _json(session)


@router.post("/api/submit")
async def api_submit(request: Request):
    """Save the form. `outcome` is null when submission was not attempted."""
    session = get_wizard_session(request)
    outcome = await run_in_threadpool(session.wizard.submit, get_record_store())
    return _json(session, {"outcome": outcome.to_dict() if outcome else None})
