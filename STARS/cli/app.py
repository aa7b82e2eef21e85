# STARS/cli/app.py
"""
REST API for STARS

FastAPI binding over StarsService. The binding only translates: request
bodies are parsed with pydantic, the service does all validation, and the
error taxonomy is mapped to status codes (ValidationError -> 400,
NotFoundError -> 404, ConflictError -> 409, anything else is logged and
returned as 500).

License: MIT

Run:
    uvicorn STARS.cli.app:app --host 0.0.0.0 --port 8000 --reload

    # persistent store
    STARS_BACKEND=sqlite STARS_DB_PATH=./stars.db uvicorn STARS.cli.app:app

Endpoints:
    GET    /health
    GET    /api/raters
    GET    /api/criteria                ?include_inactive=false
    POST   /api/criteria                JSON: {"name":"...","weight":1.5,"color":"#DC004E"}
    PUT    /api/criteria/{id}           JSON: any of name/weight/color/active
    DELETE /api/criteria/{id}           deactivates (ratings are kept)
    GET    /api/states
    GET    /api/states/{code}
    GET    /api/states/{code}/breakdown ?view=combined
    GET    /api/ratings                 ?rater_id=&state_code=
    POST   /api/ratings                 JSON: {"rater_id":"primary","state_code":"CA","criterion_id":"...","value":8}
    GET    /api/ratings/{id}
    PUT    /api/ratings/{id}            JSON: {"value":7,"notes":"..."}
    DELETE /api/ratings/{id}
    GET    /api/scores                  ?view=combined&criterion=all
    GET    /api/table                   ?criterion=all&sort=rating&order=desc
    GET    /api/agreement               ?rater_a=&rater_b=
"""
from __future__ import annotations
from contextlib import asynccontextmanager
from typing import Optional
from pydantic import BaseModel, Field
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from STARS.core.config import StarsConfig, load_config
from STARS.core.errors import ConflictError, NotFoundError, ValidationError
from STARS.core.service import StarsService, create_service

logger = logging.getLogger("stars")

VERSION = "0.1.0"


# --------- Schemas ---------
class CriterionCreate(BaseModel):
    name: str
    weight: float = 1.0
    color: str = "#1976D2"


class CriterionUpdate(BaseModel):
    name: Optional[str] = None
    weight: Optional[float] = None
    color: Optional[str] = None
    active: Optional[bool] = None


class RatingUpsert(BaseModel):
    rater_id: str
    state_code: str
    criterion_id: str
    value: int = Field(..., description="Integer rating, 1..10")
    notes: Optional[str] = None


class RatingUpdate(BaseModel):
    value: Optional[int] = None
    notes: Optional[str] = None


def _error(status: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": str(exc)})


def create_app(service: Optional[StarsService] = None,
               config: Optional[StarsConfig] = None) -> FastAPI:
    """
    Build the API around a service.

    When no service is given one is built from `config` (or load_config())
    and closed on application shutdown.
    """
    owns_service = service is None
    svc = service if service is not None else create_service(config or load_config())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if owns_service:
            svc.close()

    app = FastAPI(title="STARS", version=VERSION, lifespan=lifespan)
    app.state.service = svc

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationError)
    async def _on_validation(request: Request, exc: ValidationError):
        return _error(400, exc)

    @app.exception_handler(NotFoundError)
    async def _on_not_found(request: Request, exc: NotFoundError):
        return _error(404, exc)

    @app.exception_handler(ConflictError)
    async def _on_conflict(request: Request, exc: ConflictError):
        logger.warning("Conflict on %s: %s", request.url.path, exc)
        return _error(409, exc)

    @app.exception_handler(Exception)
    async def _on_unexpected(request: Request, exc: Exception):
        # storage failures (locked SQLite file, disk errors) end up here
        logger.exception("Request %s failed: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": f"Internal error: {exc}"})

    # --------- Routes ---------
    @app.get("/health")
    def health():
        return {"ok": True, "service": "stars", "version": app.version,
                "backend": svc.backend.name, "ratings": svc.ratings.count()}

    @app.get("/api/raters")
    def list_raters():
        return [r.to_dict() for r in svc.list_raters()]

    @app.get("/api/criteria")
    def list_criteria(include_inactive: bool = False):
        return [c.to_dict() for c in svc.list_criteria(include_inactive=include_inactive)]

    @app.post("/api/criteria", status_code=201)
    def create_criterion(req: CriterionCreate):
        crit = svc.create_criterion(req.name, req.weight, req.color)
        return crit.to_dict()

    @app.put("/api/criteria/{criterion_id}")
    def update_criterion(criterion_id: str, req: CriterionUpdate):
        changes = req.model_dump(exclude_unset=True)
        return svc.update_criterion(criterion_id, **changes).to_dict()

    @app.delete("/api/criteria/{criterion_id}", status_code=204)
    def deactivate_criterion(criterion_id: str):
        svc.deactivate_criterion(criterion_id)
        return Response(status_code=204)

    @app.get("/api/states")
    def list_states():
        return [s.to_dict() for s in svc.list_states()]

    @app.get("/api/states/{code}")
    def get_state(code: str):
        return svc.get_state(code).to_dict()

    @app.get("/api/states/{code}/breakdown")
    def state_breakdown(code: str, view: str = "combined"):
        detail = svc.state_breakdown(code, view=view)
        return {
            "state": detail["state"].to_dict(),
            "view": detail["view"],
            "criteria": [c.to_dict() for c in detail["criteria"]],
            "score": detail["score"].to_dict(),
        }

    @app.get("/api/ratings")
    def list_ratings(rater_id: Optional[str] = None, state_code: Optional[str] = None):
        return [r.to_dict() for r in svc.list_ratings(rater_id=rater_id, state_code=state_code)]

    @app.post("/api/ratings", status_code=201)
    def upsert_rating(req: RatingUpsert):
        rating = svc.upsert_rating(req.rater_id, req.state_code, req.criterion_id,
                                   req.value, req.notes)
        return rating.to_dict()

    @app.get("/api/ratings/{rating_id}")
    def get_rating(rating_id: str):
        return svc.get_rating(rating_id).to_dict()

    @app.put("/api/ratings/{rating_id}")
    def update_rating(rating_id: str, req: RatingUpdate):
        return svc.update_rating(rating_id, value=req.value, notes=req.notes).to_dict()

    @app.delete("/api/ratings/{rating_id}", status_code=204)
    def delete_rating(rating_id: str):
        if not svc.delete_rating(rating_id):
            raise NotFoundError("rating", rating_id)
        return Response(status_code=204)

    @app.get("/api/scores")
    def scores(view: str = "combined", criterion: str = "all"):
        result = svc.compute_state_scores(view=view, criterion_filter=criterion)
        top = svc.top_state(view=view, criterion_filter=criterion)
        return {
            "view": view,
            "criterion": criterion,
            "rated": sum(1 for s in result if s.has_ratings),
            "top_state": top.state_code if top else None,
            "states": [s.to_dict() for s in result],
        }

    @app.get("/api/table")
    def table(criterion: str = "all", sort: str = "rating", order: str = "desc"):
        rows = svc.state_table(criterion_filter=criterion, sort_by=sort, order=order)
        return {"criterion": criterion, "sort": sort, "order": order,
                "rows": [r.to_dict() for r in rows]}

    @app.get("/api/agreement")
    def agreement(rater_a: Optional[str] = None, rater_b: Optional[str] = None):
        return svc.compute_agreement(rater_a, rater_b).to_dict()

    return app


def build_default_app() -> FastAPI:
    """Configure the root logger from load_config() and build the served app."""
    config = load_config()
    logging.basicConfig(level=getattr(logging, config.log_level),
                        format="%(asctime)s [%(levelname)s] %(message)s")
    return create_app(config=config)


def __getattr__(name: str):
    # `uvicorn STARS.cli.app:app` resolves `app` here on first access, so
    # importing create_app reads no config file and opens no store.
    if name == "app":
        app = build_default_app()
        globals()["app"] = app
        return app
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
