import os
import logging
from fastapi import APIRouter, Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .db import get_db
from .graph import build_graph
from .plotly_graph import plotly_render
from . import crud, schemas

logger = logging.getLogger(__name__)

CORS_ORIGINS = [o.strip() for o in os.environ.get("KINTREE_CORS_ORIGINS", "*").split(",") if o.strip()]

app = FastAPI(title="kintree")
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

router = APIRouter()


def _members_or_500(db: Session):
    try:
        return crud.list_members(db)
    except SQLAlchemyError as e:
        logger.error("Loading family members failed: %s", e)
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/family-members", response_model=list[schemas.FamilyMemberOut])
def family_members(db: Session = Depends(get_db)):
    return _members_or_500(db)


@router.post("/family-members", response_model=schemas.CreateFamilyMemberResponse, status_code=201)
def add_family_member(body: schemas.CreateFamilyMemberRequest, db: Session = Depends(get_db)):
    try:
        created, relative = crud.create_member_with_relative(db, body.new_family_member, body.relative)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SQLAlchemyError as e:
        logger.error("Creating family member failed: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    return {"newFamilyMember": created, "relative": relative}


@router.post("/union-tokens", response_model=schemas.UnionTokenOut, status_code=201)
def new_union_token(db: Session = Depends(get_db)):
    try:
        return {"token": crud.issue_union_token(db)}
    except SQLAlchemyError as e:
        logger.error("Issuing union token failed: %s", e)
        raise HTTPException(status_code=500, detail=str(e))


app.include_router(router)
app.include_router(router, prefix="/api")


@app.get("/graph", response_model=schemas.GraphOut)
def get_graph(db: Session = Depends(get_db)):
    return build_graph(_members_or_500(db)).to_payload()


@app.get("/graph/figure")
def get_graph_figure(db: Session = Depends(get_db)):
    fig, converged = plotly_render.build_figure_for_members(_members_or_500(db))
    if not converged:
        logger.warning("Serving figure with an unsettled layout")
    return plotly_render.figure_json(fig)


@app.get("/", response_class=HTMLResponse, include_in_schema=False)
def ui(db: Session = Depends(get_db)):
    fig, _ = plotly_render.build_figure_for_members(_members_or_500(db))
    return plotly_render.to_html(fig)


@app.get("/health")
def health():
    return {"ok": True}
