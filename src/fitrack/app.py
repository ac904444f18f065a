# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import dataclasses
import logging
from itertools import zip_longest
from typing import List, Optional
from urllib.parse import urlencode

from fastapi import Depends, FastAPI, Form, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.engine import Engine

from fitrack.auth.service import AuthOutcome, AuthService
from fitrack.auth.session import CookieSigner, SessionBackend, SessionRecord, SessionStore
from fitrack.config import Settings
from fitrack.core.utils import df_to_csv_stream
from fitrack.errors import AuthenticationError, NotFoundError, StorageFault, ValidationError
from fitrack.infra.db import Database, init_db, make_engine
from fitrack.infra.seed import seed_catalog
from fitrack.permissions import (
    LOGIN_REASONS,
    current_user_optional,
    require_anonymous,
    require_user,
    session_token,
)
from fitrack.services import catalog_service, goal_service, profile_service, stats_service, workout_service

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Something went wrong!"


def _is_api(request: Request) -> bool:
    return request.url.path.startswith("/api/")


def _json(data, status_code: int = 200) -> JSONResponse:
    return JSONResponse(jsonable_encoder(data), status_code=status_code)


def _render(request: Request, view: str, ctx: dict, status_code: int = 200) -> JSONResponse:
    """Hand a view name and its context to the presentation layer.

    Templates live outside this package; what they receive is exactly this
    payload, with the current user injected.
    """
    user: Optional[SessionRecord] = getattr(request.state, "user", None)
    base_ctx = {"view": view, "current_user": user.to_dict() if user else None}
    return _json({**base_ctx, **(ctx or {})}, status_code=status_code)


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=303)


def _outcome_status(outcome: AuthOutcome) -> int:
    return 401 if isinstance(outcome.error, AuthenticationError) else 400


def create_app(
    settings: Optional[Settings] = None,
    *,
    engine: Optional[Engine] = None,
    session_backend: Optional[SessionBackend] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    engine = engine or make_engine(settings.database_url)
    init_db(engine)
    db = Database(engine)
    if settings.seed_catalog:
        seed_catalog(db)

    sessions = SessionStore(session_backend, max_age=settings.session_max_age)

    app = FastAPI(title="Fitness Tracker")
    app.state.settings = settings
    app.state.db = db
    app.state.sessions = sessions
    app.state.signer = CookieSigner(settings.secret_key, salt=settings.session_salt, max_age=settings.session_max_age)
    app.state.auth = AuthService(db, sessions)

    @app.middleware("http")
    async def _auth_middleware(request: Request, call_next):
        request.state.user = current_user_optional(request)
        return await call_next(request)

    # ------------------ Error handlers ------------------

    @app.exception_handler(AuthenticationError)
    async def _login_required(request: Request, exc: AuthenticationError):
        if _is_api(request):
            return _json({"error": exc.message}, status_code=401)
        return _redirect("/auth/login?" + urlencode({"reason": "login_required"}))

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError):
        if _is_api(request):
            return _json({"error": exc.message}, status_code=404)
        return _render(request, "404", {"title": "Page Not Found", "error": exc.message}, status_code=404)

    @app.exception_handler(StorageFault)
    async def _storage_fault(request: Request, exc: StorageFault):
        logger.error("Storage fault on %s %s", request.method, request.url.path, exc_info=exc)
        if _is_api(request):
            return _json({"error": GENERIC_FAILURE}, status_code=500)
        return _render(request, "error", {"title": "Error", "message": GENERIC_FAILURE}, status_code=500)

    # ------------------ Home / search ------------------

    @app.get("/")
    def home(request: Request):
        user = request.state.user
        ctx = {"title": "Fitness Tracker - Home", "stats": catalog_service.site_counts(db)}
        if user:
            ctx["recent_workouts"] = workout_service.recent_workouts(db, user)
            ctx["user_stats"] = profile_service.profile_page(db, user)["stats"]
        return _render(request, "home", ctx)

    @app.get("/search")
    def search_page(request: Request, q: str = "", kind: str = Query("all", alias="type")):
        results = catalog_service.search(db, q, kind=kind, user=request.state.user)
        return _render(request, "search", {"title": "Search - Fitness Tracker", "q": q, "type": kind, "results": results})

    @app.get("/about")
    def about(request: Request):
        return _render(request, "about", {"title": "About - Fitness Tracker"})

    @app.get("/exercises")
    def exercise_library(request: Request, category: str = "", difficulty: str = ""):
        ctx = catalog_service.exercise_library(db, category=category, difficulty=difficulty)
        return _render(request, "exercises", {"title": "Exercise Library - Fitness Tracker", **ctx})

    @app.get("/exercises/{exercise_id}")
    def exercise_detail(request: Request, exercise_id: int):
        exercise = catalog_service.get_exercise(db, exercise_id)
        return _render(request, "exercise-detail", {"title": f"{exercise['name']} - Fitness Tracker", "exercise": exercise})

    # ------------------ Auth ------------------

    @app.get("/auth/login", dependencies=[Depends(require_anonymous)])
    def login_get(request: Request, reason: str = ""):
        errors = [LOGIN_REASONS[reason]] if reason in LOGIN_REASONS else []
        return _render(request, "auth/login", {"title": "Login - Fitness Tracker", "errors": errors})

    @app.post("/auth/login", dependencies=[Depends(require_anonymous)])
    def login_post(request: Request, username: str = Form(""), password: str = Form("")):
        outcome = app.state.auth.login(username, password)
        if not outcome.success:
            return _render(
                request,
                "auth/login",
                {"title": "Login - Fitness Tracker", "errors": outcome.errors, "form_data": outcome.form_data},
                status_code=_outcome_status(outcome),
            )
        return _start_session(outcome)

    @app.get("/auth/register", dependencies=[Depends(require_anonymous)])
    def register_get(request: Request):
        return _render(request, "auth/register", {"title": "Register - Fitness Tracker", "errors": [], "form_data": {}})

    @app.post("/auth/register", dependencies=[Depends(require_anonymous)])
    def register_post(
        request: Request,
        username: str = Form(""),
        email: str = Form(""),
        password: str = Form(""),
        confirm_password: str = Form(""),
        first_name: str = Form(""),
        last_name: str = Form(""),
    ):
        outcome = app.state.auth.register(
            username=username,
            email=email,
            password=password,
            confirm_password=confirm_password,
            first_name=first_name,
            last_name=last_name,
        )
        if not outcome.success:
            return _render(
                request,
                "auth/register",
                {"title": "Register - Fitness Tracker", "errors": outcome.errors, "form_data": outcome.form_data},
                status_code=_outcome_status(outcome),
            )
        return _start_session(outcome)

    def _start_session(outcome: AuthOutcome) -> RedirectResponse:
        resp = _redirect(outcome.redirect_to or "/")
        resp.set_cookie(settings.cookie_name, app.state.signer.sign(outcome.token), **settings.cookie_settings())
        return resp

    @app.api_route("/auth/logout", methods=["GET", "POST"])
    def logout(request: Request):
        app.state.auth.logout(session_token(request))
        resp = _redirect("/")
        resp.delete_cookie(settings.cookie_name)
        return resp

    @app.get("/auth/profile")
    def profile_get(request: Request, user: SessionRecord = Depends(require_user)):
        ctx = profile_service.profile_page(db, user)
        return _render(request, "auth/profile", {"title": "My Profile - Fitness Tracker", "errors": [], **ctx})

    @app.post("/auth/profile")
    def profile_post(
        request: Request,
        user: SessionRecord = Depends(require_user),
        first_name: str = Form(""),
        last_name: str = Form(""),
        date_of_birth: str = Form(""),
        gender: str = Form(""),
        height_cm: str = Form(""),
        weight_kg: str = Form(""),
        activity_level: str = Form(""),
    ):
        form = {
            "first_name": first_name,
            "last_name": last_name,
            "date_of_birth": date_of_birth,
            "gender": gender,
            "height_cm": height_cm,
            "weight_kg": weight_kg,
            "activity_level": activity_level,
        }
        try:
            summary = profile_service.update_profile(db, user, form)
        except ValidationError as e:
            ctx = profile_service.profile_page(db, user)
            return _render(
                request,
                "auth/profile",
                {"title": "My Profile - Fitness Tracker", "errors": e.messages, **ctx, "form_data": form},
                status_code=400,
            )
        sessions.update(session_token(request), dataclasses.replace(user, profile=summary))
        return _redirect("/auth/profile")

    # ------------------ Workouts ------------------

    @app.get("/workouts")
    def workouts_list(request: Request, page: int = 1, user: SessionRecord = Depends(require_user)):
        ctx = workout_service.list_workouts(db, user, page=page)
        return _render(request, "workouts/list", {"title": "My Workouts - Fitness Tracker", **ctx})

    @app.get("/workouts/new")
    def workout_new(request: Request, user: SessionRecord = Depends(require_user)):
        return _render(
            request,
            "workouts/form",
            {
                "title": "Log New Workout - Fitness Tracker",
                "workout": None,
                "workout_exercises": [],
                "errors": [],
                **catalog_service.exercise_options(db),
            },
        )

    @app.post("/workouts/new")
    def workout_create(
        request: Request,
        user: SessionRecord = Depends(require_user),
        name: str = Form(""),
        workout_date: str = Form(""),
        duration_minutes: str = Form(""),
        total_calories: str = Form(""),
        notes: str = Form(""),
        rating: str = Form(""),
        exercise_id: List[str] = Form([]),
        sets: List[str] = Form([]),
        reps: List[str] = Form([]),
        weight_kg: List[str] = Form([]),
        exercise_duration: List[str] = Form([]),
        calories_burned: List[str] = Form([]),
        exercise_notes: List[str] = Form([]),
    ):
        form = {
            "name": name,
            "workout_date": workout_date,
            "duration_minutes": duration_minutes,
            "total_calories": total_calories,
            "notes": notes,
            "rating": rating,
        }
        entries = [
            {
                "exercise_id": ex,
                "sets": s,
                "reps": r,
                "weight_kg": w,
                "duration_minutes": d,
                "calories_burned": c,
                "notes": n,
            }
            for ex, s, r, w, d, c, n in zip_longest(
                exercise_id, sets, reps, weight_kg, exercise_duration, calories_burned, exercise_notes
            )
        ]
        try:
            workout_id = workout_service.create_workout(db, user, form, entries)
        except ValidationError as e:
            return _render(
                request,
                "workouts/form",
                {
                    "title": "Log New Workout - Fitness Tracker",
                    "workout": workout_service.workout_form_data(form),
                    "workout_exercises": [],
                    "errors": e.messages,
                    **catalog_service.exercise_options(db),
                },
                status_code=400,
            )
        return _redirect(f"/workouts/{workout_id}")

    @app.get("/workouts/export.csv")
    def workouts_export(user: SessionRecord = Depends(require_user)):
        return df_to_csv_stream(workout_service.workouts_frame(db, user), filename="workouts.csv")

    @app.get("/workouts/{workout_id}")
    def workout_detail(request: Request, workout_id: int, user: SessionRecord = Depends(require_user)):
        ctx = workout_service.get_workout(db, user, workout_id)
        return _render(request, "workouts/detail", {"title": f"{ctx['workout']['name']} - Fitness Tracker", **ctx})

    @app.get("/workouts/{workout_id}/edit")
    def workout_edit(request: Request, workout_id: int, user: SessionRecord = Depends(require_user)):
        ctx = workout_service.get_workout(db, user, workout_id)
        return _render(
            request,
            "workouts/form",
            {"title": "Edit Workout - Fitness Tracker", "errors": [], **ctx, **catalog_service.exercise_options(db)},
        )

    @app.post("/workouts/{workout_id}/edit")
    def workout_update(
        request: Request,
        workout_id: int,
        user: SessionRecord = Depends(require_user),
        name: str = Form(""),
        workout_date: str = Form(""),
        duration_minutes: str = Form(""),
        total_calories: str = Form(""),
        notes: str = Form(""),
        rating: str = Form(""),
    ):
        form = {
            "name": name,
            "workout_date": workout_date,
            "duration_minutes": duration_minutes,
            "total_calories": total_calories,
            "notes": notes,
            "rating": rating,
        }
        try:
            workout_service.update_workout(db, user, workout_id, form)
        except ValidationError as e:
            ctx = workout_service.get_workout(db, user, workout_id)
            return _render(
                request,
                "workouts/form",
                {
                    "title": "Edit Workout - Fitness Tracker",
                    "errors": e.messages,
                    **ctx,
                    "workout": {**ctx["workout"], **workout_service.workout_form_data(form)},
                    **catalog_service.exercise_options(db),
                },
                status_code=400,
            )
        return _redirect(f"/workouts/{workout_id}")

    @app.post("/workouts/{workout_id}/delete")
    def workout_delete(workout_id: int, user: SessionRecord = Depends(require_user)):
        workout_service.delete_workout(db, user, workout_id)
        return _redirect("/workouts")

    @app.post("/workouts/{workout_id}/exercises")
    def workout_add_exercise(
        request: Request,
        workout_id: int,
        user: SessionRecord = Depends(require_user),
        exercise_id: str = Form(""),
        sets: str = Form(""),
        reps: str = Form(""),
        weight_kg: str = Form(""),
        duration_minutes: str = Form(""),
        calories_burned: str = Form(""),
        notes: str = Form(""),
    ):
        entry = {
            "exercise_id": exercise_id,
            "sets": sets,
            "reps": reps,
            "weight_kg": weight_kg,
            "duration_minutes": duration_minutes,
            "calories_burned": calories_burned,
            "notes": notes,
        }
        try:
            workout_service.add_exercise(db, user, workout_id, entry)
        except ValidationError as e:
            ctx = workout_service.get_workout(db, user, workout_id)
            return _render(
                request,
                "workouts/detail",
                {"title": f"{ctx['workout']['name']} - Fitness Tracker", "errors": e.messages, **ctx},
                status_code=400,
            )
        return _redirect(f"/workouts/{workout_id}")

    @app.post("/workouts/{workout_id}/exercises/{entry_id}/delete")
    def workout_remove_exercise(workout_id: int, entry_id: int, user: SessionRecord = Depends(require_user)):
        workout_service.remove_exercise(db, user, workout_id, entry_id)
        return _redirect(f"/workouts/{workout_id}")

    # ------------------ Goals ------------------

    @app.get("/goals")
    def goals_list(request: Request, status: str = "", user: SessionRecord = Depends(require_user)):
        goals = goal_service.list_goals(db, user, status=status)
        return _render(
            request, "goals/list", {"title": "My Goals - Fitness Tracker", "goals": goals, "selected_status": status}
        )

    @app.get("/goals/new")
    def goal_new(request: Request, user: SessionRecord = Depends(require_user)):
        return _render(request, "goals/form", {"title": "Create New Goal - Fitness Tracker", "goal": None, "errors": []})

    @app.post("/goals/new")
    def goal_create(
        request: Request,
        user: SessionRecord = Depends(require_user),
        title: str = Form(""),
        description: str = Form(""),
        goal_type: str = Form(""),
        target_value: str = Form(""),
        current_value: str = Form(""),
        unit: str = Form(""),
        start_date: str = Form(""),
        target_date: str = Form(""),
    ):
        form = {
            "title": title,
            "description": description,
            "goal_type": goal_type,
            "target_value": target_value,
            "current_value": current_value,
            "unit": unit,
            "start_date": start_date,
            "target_date": target_date,
        }
        try:
            goal_id = goal_service.create_goal(db, user, form)
        except ValidationError as e:
            return _render(
                request,
                "goals/form",
                {
                    "title": "Create New Goal - Fitness Tracker",
                    "goal": goal_service.goal_form_data(form),
                    "errors": e.messages,
                },
                status_code=400,
            )
        return _redirect(f"/goals/{goal_id}")

    @app.get("/goals/{goal_id}")
    def goal_detail(request: Request, goal_id: int, user: SessionRecord = Depends(require_user)):
        goal = goal_service.get_goal(db, user, goal_id)
        return _render(request, "goals/detail", {"title": f"{goal['title']} - Fitness Tracker", "goal": goal})

    @app.get("/goals/{goal_id}/edit")
    def goal_edit(request: Request, goal_id: int, user: SessionRecord = Depends(require_user)):
        goal = goal_service.get_goal(db, user, goal_id)
        return _render(request, "goals/form", {"title": "Edit Goal - Fitness Tracker", "goal": goal, "errors": []})

    @app.post("/goals/{goal_id}/edit")
    def goal_update(
        request: Request,
        goal_id: int,
        user: SessionRecord = Depends(require_user),
        title: str = Form(""),
        description: str = Form(""),
        goal_type: str = Form(""),
        target_value: str = Form(""),
        current_value: str = Form(""),
        unit: str = Form(""),
        start_date: str = Form(""),
        target_date: str = Form(""),
        status: str = Form(""),
    ):
        form = {
            "title": title,
            "description": description,
            "goal_type": goal_type,
            "target_value": target_value,
            "current_value": current_value,
            "unit": unit,
            "start_date": start_date,
            "target_date": target_date,
            "status": status,
        }
        try:
            goal_service.update_goal(db, user, goal_id, form)
        except ValidationError as e:
            goal = goal_service.get_goal(db, user, goal_id)
            return _render(
                request,
                "goals/form",
                {
                    "title": "Edit Goal - Fitness Tracker",
                    "goal": {**goal, **goal_service.goal_form_data(form)},
                    "errors": e.messages,
                },
                status_code=400,
            )
        return _redirect(f"/goals/{goal_id}")

    @app.post("/goals/{goal_id}/progress")
    def goal_progress(
        request: Request,
        goal_id: int,
        user: SessionRecord = Depends(require_user),
        current_value: str = Form(""),
    ):
        try:
            goal_service.update_progress(db, user, goal_id, current_value)
        except ValidationError as e:
            goal = goal_service.get_goal(db, user, goal_id)
            return _render(
                request,
                "goals/detail",
                {"title": f"{goal['title']} - Fitness Tracker", "goal": goal, "errors": e.messages},
                status_code=400,
            )
        return _redirect(f"/goals/{goal_id}")

    @app.post("/goals/{goal_id}/delete")
    def goal_delete(goal_id: int, user: SessionRecord = Depends(require_user)):
        goal_service.delete_goal(db, user, goal_id)
        return _redirect("/goals")

    # ------------------ JSON API ------------------

    @app.get("/api/exercises")
    def api_exercises(category: str = "", search: str = ""):
        return _json(catalog_service.list_exercises(db, category=category, search=search))

    @app.get("/api/categories")
    def api_categories():
        return _json(catalog_service.list_categories(db))

    @app.get("/api/stats")
    def api_stats(user: SessionRecord = Depends(require_user)):
        return _json(stats_service.dashboard(db, user))

    @app.get("/api/workouts/recent")
    def api_recent_workouts(limit: int = 5, user: SessionRecord = Depends(require_user)):
        return _json(workout_service.recent_workouts(db, user, limit=limit))

    @app.get("/api/exercises/{exercise_id}/calories")
    def api_exercise_calories(exercise_id: int, duration: str = "0"):
        return _json({"calories": catalog_service.exercise_calories(db, exercise_id, duration)})

    @app.get("/api/search")
    def api_search(q: str = "", kind: str = Query("exercises", alias="type")):
        if kind != "exercises":
            return _json([])
        return _json(catalog_service.search_exercises(db, q))

    return app
