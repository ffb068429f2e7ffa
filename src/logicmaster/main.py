import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .config import settings
from .errors import ApiError, ErrorKind
from .gateway import RequestGateway
from .lifecycle import (
    LifecycleError,
    OperationCancelled,
    PracticeController,
    QuestionController,
    ReviewController,
)
from .models import (
    Category,
    LoginForm,
    PasswordChange,
    ProfileUpdate,
    RegistrationForm,
    SelectOption,
    StartPractice,
)
from .session import SessionFacade
from .storage import get_redis
from .token_store import TokenStore

# --- Logging Setup ---
logger = logging.getLogger("logicmaster")
logger.setLevel(logging.INFO)

if not os.path.exists(settings.LOG_DIR):
    os.makedirs(settings.LOG_DIR)
log_path = os.path.join(settings.LOG_DIR, settings.LOG_FILE)
file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
file_handler.setFormatter(
    logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
)
logger.addHandler(file_handler)


class Screens:
    """The question views currently open on this device, one per flow."""

    def __init__(self):
        self.practice: Optional[PracticeController] = None
        self.review: Optional[ReviewController] = None

    def open(self, flow: str, controller: QuestionController) -> QuestionController:
        previous = getattr(self, flow)
        if previous is not None:
            previous.close()
        setattr(self, flow, controller)
        return controller

    def close_all(self) -> None:
        for flow in ("practice", "review"):
            controller = getattr(self, flow)
            if controller is not None:
                controller.close()
            setattr(self, flow, None)


# --- Lifecycle ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    token_store = TokenStore(get_redis())
    gateway = RequestGateway(token_store)
    facade = SessionFacade(token_store, gateway)
    await facade.init()
    app.state.facade = facade
    app.state.screens = Screens()
    logger.info(f"Session ready (authenticated: {facade.is_authenticated()})")
    yield
    app.state.screens.close_all()
    await gateway.aclose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    debug=settings.DEBUG,
    lifespan=lifespan,
)


# --- Dependencies ---
def get_facade(request: Request) -> SessionFacade:
    return request.app.state.facade


def get_screens(request: Request) -> Screens:
    return request.app.state.screens


# --- Error Handling ---
_STATUS_BY_KIND = {
    ErrorKind.AUTHENTICATION_FAILED: 401,
    ErrorKind.HTTP_ERROR: 502,
    ErrorKind.TRANSPORT_ERROR: 503,
}


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    body = {"error": str(exc), "kind": exc.kind.value}
    if exc.status is not None:
        body["status"] = exc.status
    return JSONResponse(body, status_code=_STATUS_BY_KIND[exc.kind])


@app.exception_handler(ValidationError)
async def malformed_response_handler(request: Request, exc: ValidationError):
    logger.error(f"Malformed backend response on {request.url.path}: {exc}")
    return JSONResponse(
        {
            "error": "Unexpected response from the question service",
            "kind": "malformed_response",
        },
        status_code=502,
    )


@app.exception_handler(LifecycleError)
async def lifecycle_error_handler(request: Request, exc: LifecycleError):
    return JSONResponse({"error": str(exc), "kind": "lifecycle"}, status_code=409)


@app.exception_handler(OperationCancelled)
async def cancelled_handler(request: Request, exc: OperationCancelled):
    return JSONResponse(
        {"error": "Question view was closed", "kind": "cancelled"}, status_code=409
    )


def _no_active_view() -> JSONResponse:
    return JSONResponse({"error": "No active question view"}, status_code=404)


def _stats_body(facade: SessionFacade) -> dict:
    stats = facade.stats
    body = stats.model_dump(by_alias=True)
    body["missedCount"] = stats.missed_count
    body["streakMessage"] = stats.streak_message
    return body


# --- Routes: Authentication ---
@app.get("/api/auth/status")
async def auth_status(facade: SessionFacade = Depends(get_facade)):
    authenticated = await facade.check_auth_status()
    if authenticated:
        await facade.refresh_stats()
    return {"authenticated": authenticated, "user": facade.current_user}


@app.post("/api/auth/login")
async def login(form: LoginForm, facade: SessionFacade = Depends(get_facade)):
    response = await facade.login(form.email, form.password)
    await facade.refresh_stats()
    return {"message": response.message, "user": response.user}


@app.post("/api/auth/register")
async def register(form: RegistrationForm, facade: SessionFacade = Depends(get_facade)):
    response = await facade.register(form.username, form.email, form.password)
    await facade.refresh_stats()
    return {"message": response.message, "user": response.user}


@app.post("/api/auth/guest")
def enter_as_guest(facade: SessionFacade = Depends(get_facade)):
    return {"user": facade.enter_as_guest()}


@app.post("/api/auth/logout")
async def logout(
    facade: SessionFacade = Depends(get_facade),
    screens: Screens = Depends(get_screens),
):
    screens.close_all()
    await facade.logout()
    return {"status": "success"}


@app.get("/api/auth/profile")
async def get_profile(facade: SessionFacade = Depends(get_facade)):
    return {"user": await facade.get_profile()}


@app.put("/api/auth/profile")
async def update_profile(
    update: ProfileUpdate, facade: SessionFacade = Depends(get_facade)
):
    return {"user": await facade.update_profile(update.username, update.email)}


@app.put("/api/auth/password")
async def change_password(
    change: PasswordChange, facade: SessionFacade = Depends(get_facade)
):
    message = await facade.change_password(
        change.current_password, change.new_password
    )
    return {"message": message}


# --- Routes: Progress ---
@app.get("/api/categories")
async def get_categories():
    return [{"id": c.value, "name": c.display_name} for c in Category]


@app.get("/api/stats")
async def get_stats(facade: SessionFacade = Depends(get_facade)):
    await facade.refresh_stats()
    return _stats_body(facade)


# --- Routes: Practice ---
@app.post("/api/practice/start")
async def start_practice(
    start: StartPractice,
    facade: SessionFacade = Depends(get_facade),
    screens: Screens = Depends(get_screens),
):
    controller = screens.open(
        "practice", PracticeController(facade, start.category, start.difficulty)
    )
    try:
        await controller.start()
    except Exception:
        screens.practice = None
        raise
    return controller.snapshot()


@app.get("/api/practice")
def get_practice(screens: Screens = Depends(get_screens)):
    if screens.practice is None:
        return _no_active_view()
    return screens.practice.snapshot()


@app.post("/api/practice/select")
def select_practice_option(
    choice: SelectOption, screens: Screens = Depends(get_screens)
):
    if screens.practice is None:
        return _no_active_view()
    screens.practice.select(choice.option)
    return screens.practice.snapshot()


@app.post("/api/practice/submit")
async def submit_practice_answer(screens: Screens = Depends(get_screens)):
    controller = screens.practice
    if controller is None:
        return _no_active_view()
    await controller.submit()
    return controller.snapshot()


@app.post("/api/practice/next")
async def next_practice_question(screens: Screens = Depends(get_screens)):
    controller = screens.practice
    if controller is None:
        return _no_active_view()
    await controller.advance()
    return controller.snapshot()


@app.post("/api/practice/close")
def close_practice(screens: Screens = Depends(get_screens)):
    if screens.practice is not None:
        screens.practice.close()
        screens.practice = None
    return {"status": "success"}


# --- Routes: Review ---
@app.post("/api/review/start")
async def start_review(
    facade: SessionFacade = Depends(get_facade),
    screens: Screens = Depends(get_screens),
):
    controller = screens.open("review", ReviewController(facade))
    await controller.start()
    return controller.snapshot()


@app.get("/api/review")
def get_review(screens: Screens = Depends(get_screens)):
    if screens.review is None:
        return _no_active_view()
    return screens.review.snapshot()


@app.post("/api/review/select")
def select_review_option(choice: SelectOption, screens: Screens = Depends(get_screens)):
    if screens.review is None:
        return _no_active_view()
    screens.review.select(choice.option)
    return screens.review.snapshot()


@app.post("/api/review/submit")
async def submit_review_answer(screens: Screens = Depends(get_screens)):
    controller = screens.review
    if controller is None:
        return _no_active_view()
    await controller.submit()
    return controller.snapshot()


@app.post("/api/review/next")
async def next_review_question(screens: Screens = Depends(get_screens)):
    controller = screens.review
    if controller is None:
        return _no_active_view()
    await controller.advance()
    return controller.snapshot()


def run() -> None:
    uvicorn.run(
        "logicmaster.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    run()
