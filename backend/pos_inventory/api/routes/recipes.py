"""Recipe routes - versioned recipes with ingredient cost snapshots."""

from typing import Literal, Optional

from fastapi import APIRouter, Query, Request

from pos_inventory.core.rate_limit import limiter
from pos_inventory.core.rbac import CurrentUser, RequireManager
from pos_inventory.core.responses import list_response
from pos_inventory.core.validators import PositiveIntId
from pos_inventory.db.session import DbSession
from pos_inventory.schemas.recipe import (
    RecipeCreate,
    RecipeResponse,
    RecipeUpdate,
    RecipeVersionInput,
    SetDefaultVersionRequest,
)
from pos_inventory.services.recipe_service import RecipeService

router = APIRouter()


@router.get("/")
@limiter.limit("60/minute")
def list_recipes(
    request: Request,
    db: DbSession,
    current_user: CurrentUser,
    search: str = Query("", max_length=200),
    status: Literal["active", "archived", "all"] = Query("active"),
    category: Optional[str] = None,
    menu_item_id: Optional[int] = Query(None, gt=0),
):
    recipes = RecipeService(db).list_recipes(search, status, category, menu_item_id)
    return list_response([RecipeResponse.model_validate(r) for r in recipes])


@router.post("/", response_model=RecipeResponse, status_code=201)
@limiter.limit("30/minute")
def create_recipe(request: Request, payload: RecipeCreate, db: DbSession, current_user: RequireManager):
    """Create a recipe, optionally with its first version."""
    return RecipeService(db).create_recipe(payload.model_dump(exclude_unset=True), current_user.user_id)


@router.get("/{recipe_id}", response_model=RecipeResponse)
@limiter.limit("60/minute")
def get_recipe(request: Request, recipe_id: PositiveIntId, db: DbSession, current_user: CurrentUser):
    return RecipeService(db).get_recipe(recipe_id)


@router.put("/{recipe_id}", response_model=RecipeResponse)
@limiter.limit("30/minute")
def update_recipe(
    request: Request,
    recipe_id: PositiveIntId,
    payload: RecipeUpdate,
    db: DbSession,
    current_user: RequireManager,
):
    return RecipeService(db).update_recipe_meta(
        recipe_id, payload.model_dump(exclude_unset=True), current_user.user_id
    )


@router.post("/{recipe_id}/versions", response_model=RecipeResponse, status_code=201)
@limiter.limit("30/minute")
def add_version(
    request: Request,
    recipe_id: PositiveIntId,
    payload: RecipeVersionInput,
    db: DbSession,
    current_user: RequireManager,
):
    return RecipeService(db).add_version(recipe_id, payload.model_dump(), current_user.user_id)


@router.post("/{recipe_id}/default-version", response_model=RecipeResponse)
@limiter.limit("30/minute")
def set_default_version(
    request: Request,
    recipe_id: PositiveIntId,
    payload: SetDefaultVersionRequest,
    db: DbSession,
    current_user: RequireManager,
):
    return RecipeService(db).set_default_version(recipe_id, payload.version_id, current_user.user_id)


@router.delete("/{recipe_id}")
@limiter.limit("30/minute")
def archive_recipe(request: Request, recipe_id: PositiveIntId, db: DbSession, current_user: RequireManager):
    RecipeService(db).archive_recipe(recipe_id, current_user.user_id)
    return {"success": True}
