"""FastAPI server exposing the profile wizard and dashboard for deployment."""

from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, File, Header, HTTPException, Request, UploadFile
from pydantic import BaseModel, ConfigDict, ValidationError

from wardrobe_app.app import WardrobeApp
from logic.validation import validation_failure
from models.clothing import UploadedFile
from models.taxonomy import DRESSING_STYLE_DETAILS, DressingStyle
from workflows.dashboard import DashboardSession
from workflows.profile_setup import ProfileSetupWizard

# error_kind -> HTTP status for non-ok coordinator results.
_ERROR_STATUS = {
    "validation": 400,
    "rejection": 422,
    "busy": 409,
    "state_corruption": 409,
    "service": 502,
}


class FieldsUpdate(BaseModel):
    """Partial update of the wizard's profile answers."""

    model_config = ConfigDict(extra="forbid")

    height: Optional[float] = None
    weight: Optional[float] = None
    age: Optional[int] = None
    dressing_style: Optional[DressingStyle] = None


class SessionRegistry:
    """Keeps at most one wizard and one dashboard per user in memory."""

    def __init__(self) -> None:
        self.wizards: Dict[str, ProfileSetupWizard] = {}
        self.dashboards: Dict[str, DashboardSession] = {}

    def wizard(self, user_id: str) -> ProfileSetupWizard:
        wizard = self.wizards.get(user_id)
        if wizard is None:
            raise HTTPException(status_code=404, detail="No profile setup in progress")
        return wizard

    def dashboard(self, wardrobe: WardrobeApp, user_id: str) -> DashboardSession:
        session = self.dashboards.get(user_id)
        if session is None:
            session = wardrobe.open_dashboard(user_id)
            self.dashboards[user_id] = session
        return session


def current_user(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Caller identity; authentication happens upstream of this service."""

    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id.strip()


def _respond(result: Dict[str, Any]) -> Dict[str, Any]:
    if result.get("status") in {"ok", "superseded"}:
        return result
    status_code = _ERROR_STATUS.get(result.get("error_kind", "service"), 500)
    raise HTTPException(status_code=status_code, detail=result)


async def _to_uploaded_file(upload: UploadFile) -> UploadedFile:
    data = await upload.read()
    return UploadedFile(filename=upload.filename or "upload", content_type=upload.content_type or "", data=data)


def create_app(wardrobe: WardrobeApp | None = None) -> FastAPI:
    """Build the ASGI app; the wardrobe is created on first use when not given."""

    api = FastAPI(title="Wardrobe", version="0.1.0")
    api.state.wardrobe = wardrobe
    api.state.sessions = SessionRegistry()

    def get_wardrobe(request: Request) -> WardrobeApp:
        if request.app.state.wardrobe is None:
            request.app.state.wardrobe = WardrobeApp()
        return request.app.state.wardrobe

    def get_sessions(request: Request) -> SessionRegistry:
        return request.app.state.sessions

    @api.get("/healthz")
    async def healthcheck(wardrobe: WardrobeApp = Depends(get_wardrobe)) -> dict:
        """Lightweight readiness probe."""

        return {
            "status": "ok",
            "service": "wardrobe",
            "environment": wardrobe.config.environment or "local",
            "storage_backend": wardrobe.config.storage_backend,
        }

    @api.get("/styles")
    async def dressing_styles() -> dict:
        """Choices for the dressing style step, in display order."""

        return {
            "status": "ok",
            "styles": [{"value": style.value, **details} for style, details in DRESSING_STYLE_DETAILS.items()],
        }

    @api.get("/profile/status")
    async def profile_status(
        user_id: str = Depends(current_user), wardrobe: WardrobeApp = Depends(get_wardrobe)
    ) -> dict:
        """Tell the client whether to show the wizard or the dashboard."""

        return {"status": "ok", "has_profile": await wardrobe.has_profile(user_id)}

    # Profile setup wizard

    @api.post("/wizard")
    async def start_wizard(
        user_id: str = Depends(current_user),
        wardrobe: WardrobeApp = Depends(get_wardrobe),
        sessions: SessionRegistry = Depends(get_sessions),
    ) -> dict:
        previous = sessions.wizards.get(user_id)
        if previous is not None:
            previous.reset()
        wizard = wardrobe.start_wizard(user_id, on_complete=lambda: sessions.dashboards.pop(user_id, None))
        sessions.wizards[user_id] = wizard
        return {"status": "ok", **wizard.snapshot()}

    @api.get("/wizard")
    async def wizard_state(
        user_id: str = Depends(current_user), sessions: SessionRegistry = Depends(get_sessions)
    ) -> dict:
        return {"status": "ok", **sessions.wizard(user_id).snapshot()}

    @api.patch("/wizard/fields")
    async def update_fields(
        payload: Dict[str, Any],
        user_id: str = Depends(current_user),
        sessions: SessionRegistry = Depends(get_sessions),
    ) -> dict:
        wizard = sessions.wizard(user_id)
        try:
            update = FieldsUpdate.model_validate(payload)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=validation_failure("Invalid profile fields", exc))
        return _respond(wizard.update_fields(**update.model_dump(exclude_unset=True)))

    @api.post("/wizard/next")
    async def next_step(
        user_id: str = Depends(current_user), sessions: SessionRegistry = Depends(get_sessions)
    ) -> dict:
        wizard = sessions.wizard(user_id)
        if not wizard.can_advance():
            raise HTTPException(status_code=400, detail="Please complete this step first")
        wizard.advance()
        return {"status": "ok", **wizard.snapshot()}

    @api.post("/wizard/back")
    async def previous_step(
        user_id: str = Depends(current_user), sessions: SessionRegistry = Depends(get_sessions)
    ) -> dict:
        wizard = sessions.wizard(user_id)
        wizard.retreat()
        return {"status": "ok", **wizard.snapshot()}

    @api.post("/wizard/uploads/{category}")
    async def wizard_upload(
        category: str,
        file: UploadFile = File(...),
        user_id: str = Depends(current_user),
        sessions: SessionRegistry = Depends(get_sessions),
    ) -> dict:
        wizard = sessions.wizard(user_id)
        return _respond(await wizard.drop_file(category, [await _to_uploaded_file(file)]))

    @api.delete("/wizard/uploads/{category}")
    async def wizard_remove_upload(
        category: str,
        user_id: str = Depends(current_user),
        sessions: SessionRegistry = Depends(get_sessions),
    ) -> dict:
        return _respond(sessions.wizard(user_id).remove_file(category))

    @api.post("/wizard/submit")
    async def submit_wizard(
        user_id: str = Depends(current_user), sessions: SessionRegistry = Depends(get_sessions)
    ) -> dict:
        wizard = sessions.wizard(user_id)
        result = _respond(await wizard.submit())
        sessions.wizards.pop(user_id, None)
        return result

    # Dashboard

    @api.post("/dashboard/load")
    async def load_dashboard(
        user_id: str = Depends(current_user),
        wardrobe: WardrobeApp = Depends(get_wardrobe),
        sessions: SessionRegistry = Depends(get_sessions),
    ) -> dict:
        return _respond(await sessions.dashboard(wardrobe, user_id).load())

    @api.get("/dashboard")
    async def dashboard_state(
        user_id: str = Depends(current_user),
        wardrobe: WardrobeApp = Depends(get_wardrobe),
        sessions: SessionRegistry = Depends(get_sessions),
    ) -> dict:
        return {"status": "ok", **sessions.dashboard(wardrobe, user_id).snapshot()}

    @api.post("/dashboard/selection/{item_id}")
    async def toggle_selection(
        item_id: str,
        user_id: str = Depends(current_user),
        wardrobe: WardrobeApp = Depends(get_wardrobe),
        sessions: SessionRegistry = Depends(get_sessions),
    ) -> dict:
        return _respond(sessions.dashboard(wardrobe, user_id).toggle_item(item_id))

    @api.post("/dashboard/uploads/{category}")
    async def dashboard_upload(
        category: str,
        file: UploadFile = File(...),
        user_id: str = Depends(current_user),
        wardrobe: WardrobeApp = Depends(get_wardrobe),
        sessions: SessionRegistry = Depends(get_sessions),
    ) -> dict:
        session = sessions.dashboard(wardrobe, user_id)
        return _respond(await session.drop_clothing(category, [await _to_uploaded_file(file)]))

    @api.delete("/dashboard/uploads/{category}")
    async def dashboard_remove_upload(
        category: str,
        user_id: str = Depends(current_user),
        wardrobe: WardrobeApp = Depends(get_wardrobe),
        sessions: SessionRegistry = Depends(get_sessions),
    ) -> dict:
        return _respond(sessions.dashboard(wardrobe, user_id).remove_clothing(category))

    @api.post("/dashboard/uploads/{category}/save")
    async def dashboard_save_upload(
        category: str,
        user_id: str = Depends(current_user),
        wardrobe: WardrobeApp = Depends(get_wardrobe),
        sessions: SessionRegistry = Depends(get_sessions),
    ) -> dict:
        return _respond(await sessions.dashboard(wardrobe, user_id).save_clothing(category))

    @api.post("/dashboard/face")
    async def dashboard_face(
        file: UploadFile = File(...),
        user_id: str = Depends(current_user),
        wardrobe: WardrobeApp = Depends(get_wardrobe),
        sessions: SessionRegistry = Depends(get_sessions),
    ) -> dict:
        session = sessions.dashboard(wardrobe, user_id)
        return _respond(await session.drop_face([await _to_uploaded_file(file)]))

    @api.delete("/dashboard/face")
    async def dashboard_remove_face(
        user_id: str = Depends(current_user),
        wardrobe: WardrobeApp = Depends(get_wardrobe),
        sessions: SessionRegistry = Depends(get_sessions),
    ) -> dict:
        return _respond(sessions.dashboard(wardrobe, user_id).remove_face())

    @api.post("/dashboard/face/save")
    async def dashboard_save_face(
        user_id: str = Depends(current_user),
        wardrobe: WardrobeApp = Depends(get_wardrobe),
        sessions: SessionRegistry = Depends(get_sessions),
    ) -> dict:
        return _respond(await sessions.dashboard(wardrobe, user_id).save_profile_picture())

    @api.post("/dashboard/generate")
    async def generate_outfit(
        user_id: str = Depends(current_user),
        wardrobe: WardrobeApp = Depends(get_wardrobe),
        sessions: SessionRegistry = Depends(get_sessions),
    ) -> dict:
        return _respond(await sessions.dashboard(wardrobe, user_id).generate_outfit())

    @api.post("/dashboard/regenerate")
    async def regenerate_outfit(
        user_id: str = Depends(current_user),
        wardrobe: WardrobeApp = Depends(get_wardrobe),
        sessions: SessionRegistry = Depends(get_sessions),
    ) -> dict:
        return _respond(await sessions.dashboard(wardrobe, user_id).regenerate())

    return api


app = create_app()


def get_app() -> FastAPI:
    """Expose the FastAPI instance for ASGI servers."""

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("server.api:app", host="0.0.0.0", port=8080, reload=False)
