import asyncio
import datetime
import sqlite3
import threading
import time
from typing import Optional

from fastapi import (
    FastAPI,
    HTTPException,
    Request,
    Response,
    Body,
    APIRouter,
    Header,
    Depends,
)
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from config import APP_VERSION, load_app_settings
from db import (
    Database,
    ExerciseRepository,
    DailyLogRepository,
    ReminderSettingsRepository,
    EmailLogRepository,
    ExerciseMediaRepository,
)
from email_service import EmailService, EmailDeliveryError
from log_utils import get_logger
from media_service import MediaSearchService, MediaSearchError
from reminder_service import ReminderService
from settings_schema import AppSettingsSchema
from stats_service import StatisticsService

logger = get_logger(__name__)

AUTH_COOKIE = "pt-auth"
AUTH_COOKIE_MAX_AGE = 60 * 60 * 24 * 30


class ExerciseIn(BaseModel):
    name: Optional[str] = None
    sets: Optional[int] = None
    reps: Optional[int] = None
    frequencyPerWeek: Optional[int] = None


class LogIn(BaseModel):
    date: Optional[str] = None
    exerciseId: Optional[int] = None
    setsCompleted: Optional[int] = 0


class PasswordIn(BaseModel):
    password: Optional[str] = None


class ReminderScheduler(threading.Thread):
    """Background thread checking once a minute whether a reminder is due."""

    def __init__(self, api: "PTTrackerAPI", interval_seconds: int = 60) -> None:
        super().__init__(daemon=True)
        self.api = api
        self.interval = interval_seconds
        self.last_sent: datetime.date | None = None
        self.running = True

    def tick(self, now: datetime.datetime | None = None) -> dict | None:
        today = self.api.reminders.local_now(now).date()
        if self.last_sent == today:
            return None
        result = self.api.reminders.run_cron(now)
        if result.get("sent"):
            self.last_sent = today
        return result

    def run(self) -> None:
        while self.running:
            try:
                self.tick()
            except (EmailDeliveryError, sqlite3.Error) as e:
                logger.error("Scheduled reminder failed: %s", e)
            except Exception:
                logger.exception("Unexpected error in reminder scheduler")
            time.sleep(self.interval)


class PTTrackerAPI:
    """Provides REST endpoints for the exercise tracker."""

    def __init__(
        self,
        db_path: str | None = None,
        yaml_path: str = "settings.yaml",
        *,
        settings: AppSettingsSchema | None = None,
        start_scheduler: bool = False,
    ) -> None:
        self.config = settings or load_app_settings(yaml_path)
        self.db_path = db_path or self.config.db_path
        self.exercises = ExerciseRepository(self.db_path)
        self.logs = DailyLogRepository(self.db_path)
        self.reminder_settings = ReminderSettingsRepository(self.db_path)
        self.email_logs = EmailLogRepository(self.db_path)
        self.media = ExerciseMediaRepository(self.db_path)
        self.email = EmailService(self.config.resend_api_key, self.config.email_from)
        self.media_search = MediaSearchService(
            self.config.youtube_api_key,
            self.config.unsplash_access_key,
            self.config.media_results,
        )
        self.statistics = StatisticsService(self.exercises, self.logs)
        self.reminders = ReminderService(
            self.exercises, self.reminder_settings, self.email, self.email_logs
        )
        self.app = FastAPI(
            title="PT Tracker API",
            description="REST API for physical therapy exercise tracking",
            version=APP_VERSION,
        )
        if start_scheduler:
            self.scheduler = ReminderScheduler(self)
            self.scheduler.start()
        self._setup_routes()

    def _require_auth(self, request: Request) -> None:
        if not self.config.app_password:
            return
        if request.cookies.get(AUTH_COOKIE) != "authenticated":
            raise HTTPException(status_code=401, detail="Unauthorized")

    def _check_cron_secret(self, authorization: Optional[str]) -> None:
        secret = self.config.cron_secret
        if not secret or authorization != f"Bearer {secret}":
            raise HTTPException(status_code=401, detail="Unauthorized")

    def _setup_routes(self) -> None:
        protected = [Depends(self._require_auth)]
        exercises_router = APIRouter(
            prefix="/exercises", tags=["Exercises"], dependencies=protected
        )
        logs_router = APIRouter(prefix="/logs", tags=["Logs"], dependencies=protected)
        reminders_router = APIRouter(
            prefix="/reminders", tags=["Reminders"], dependencies=protected
        )

        @self.app.exception_handler(sqlite3.Error)
        async def database_error(request: Request, exc: sqlite3.Error):
            logger.error("Database error on %s: %s", request.url.path, exc)
            return JSONResponse(status_code=500, content={"detail": "database error"})

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            self.exercises.fetch_all("SELECT 1;")
            return {"status": "ok"}

        @self.app.post("/auth")
        def login(response: Response, body: PasswordIn = Body(...)):
            if not self.config.app_password:
                raise HTTPException(status_code=500, detail="App password not configured")
            if body.password != self.config.app_password:
                raise HTTPException(status_code=401, detail="Invalid password")
            response.set_cookie(
                AUTH_COOKIE,
                "authenticated",
                max_age=AUTH_COOKIE_MAX_AGE,
                httponly=True,
                secure=self.config.secure_cookies,
                samesite="lax",
                path="/",
            )
            return {"success": True}

        @self.app.delete("/auth")
        def logout(response: Response):
            response.delete_cookie(AUTH_COOKIE, path="/")
            return {"success": True}

        @exercises_router.get("")
        def list_exercises():
            return [ExerciseRepository.to_dict(r) for r in self.exercises.fetch_all_exercises()]

        @exercises_router.post("", status_code=201)
        def create_exercise(body: ExerciseIn):
            if None in (body.name, body.sets, body.reps, body.frequencyPerWeek):
                raise HTTPException(status_code=400, detail="Missing required fields")
            try:
                eid = self.exercises.add(
                    body.name, body.sets, body.reps, body.frequencyPerWeek
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return ExerciseRepository.to_dict(self.exercises.fetch_detail(eid))

        @exercises_router.get("/{exercise_id}")
        async def get_exercise(exercise_id: int):
            try:
                row = await asyncio.to_thread(self.exercises.fetch_detail, exercise_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            data = ExerciseRepository.to_dict(row)
            data["media"] = await self.media.fetch_for_exercise(exercise_id)
            return data

        @exercises_router.put("/{exercise_id}")
        def update_exercise(exercise_id: int, body: ExerciseIn):
            try:
                self.exercises.fetch_detail(exercise_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            try:
                self.exercises.update(
                    exercise_id,
                    name=body.name,
                    sets=body.sets,
                    reps=body.reps,
                    frequency_per_week=body.frequencyPerWeek,
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return ExerciseRepository.to_dict(self.exercises.fetch_detail(exercise_id))

        @exercises_router.delete("/{exercise_id}")
        def delete_exercise(exercise_id: int):
            try:
                self.exercises.delete(exercise_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {"success": True}

        @exercises_router.get("/{exercise_id}/media")
        async def exercise_media(exercise_id: int, refresh: bool = False):
            try:
                row = await asyncio.to_thread(self.exercises.fetch_detail, exercise_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            name = row[1]
            cached = await self.media.fetch_for_exercise(exercise_id)
            if cached and not refresh:
                return cached
            try:
                videos, images = await asyncio.gather(
                    asyncio.to_thread(self.media_search.search_videos, name),
                    asyncio.to_thread(self.media_search.search_images, name),
                )
            except MediaSearchError as e:
                logger.error("Error fetching media for %s: %s", name, e)
                raise HTTPException(status_code=502, detail="Failed to fetch media")
            if refresh and cached:
                await self.media.delete_for_exercise(exercise_id)
            await self.media.add_many(exercise_id, videos + images)
            return await self.media.fetch_for_exercise(exercise_id)

        @logs_router.get("")
        def list_logs(date: Optional[str] = None):
            if not date:
                raise HTTPException(status_code=400, detail="Date parameter required")
            try:
                return self.statistics.checklist(date)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @logs_router.post("")
        def update_log(body: LogIn):
            if not body.date or body.exerciseId is None:
                raise HTTPException(status_code=400, detail="Missing required fields")
            try:
                return self.logs.upsert(body.date, body.exerciseId, body.setsCompleted)
            except LookupError as e:
                raise HTTPException(status_code=404, detail=str(e))
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @self.app.get("/stats", dependencies=protected)
        def stats(days: int = 30, today: Optional[str] = None):
            try:
                return self.statistics.adherence(days, today).to_dict()
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @reminders_router.get("")
        def get_reminder_settings():
            return self.reminder_settings.fetch()

        @reminders_router.put("")
        def update_reminder_settings(body: dict = Body(...)):
            try:
                return self.reminder_settings.update(body)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

        @reminders_router.post("/send")
        def send_reminder():
            today = self.reminders.local_now().date()
            try:
                return self.reminders.send_reminder(today)
            except EmailDeliveryError as e:
                logger.error("Error sending reminder: %s", e)
                raise HTTPException(status_code=500, detail="Failed to send reminder")

        @self.app.post("/cron")
        def cron(authorization: Optional[str] = Header(None)):
            self._check_cron_secret(authorization)
            try:
                return self.reminders.run_cron()
            except sqlite3.Error as e:
                logger.error("Cron database error: %s", e)
                return JSONResponse(
                    status_code=500, content={"success": False, "error": "db_error"}
                )
            except EmailDeliveryError as e:
                logger.error("Cron email error: %s", e)
                return JSONResponse(
                    status_code=500, content={"success": False, "error": "email_error"}
                )

        @self.app.get("/cron")
        def cron_health():
            return {"status": "ok"}

        @self.app.post("/init")
        def init_db(authorization: Optional[str] = Header(None)):
            self._check_cron_secret(authorization)
            Database(self.db_path)
            return {"success": True, "message": "Database initialized"}

        @self.app.get("/init")
        def init_hint():
            return {"message": "Use POST with authorization to initialize database"}

        @self.app.get("/reports/email_logs", dependencies=protected)
        def list_email_logs():
            return self.email_logs.fetch_all_logs()

        self.app.include_router(exercises_router)
        self.app.include_router(logs_router)
        self.app.include_router(reminders_router)


api = PTTrackerAPI()
app = api.app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app)
