"""Category CRUD: each tenant keeps its own list."""

import uuid

from fastapi import APIRouter, HTTPException, status

from taskhive.api.deps import CurrentUser, Session, authorize, caller_of
from taskhive.models.category import Category, CategoryCreate, CategoryRead, CategoryUpdate
from taskhive.services import categories as repo
from taskhive.services.access_policy import Collection, Decision, Operation
from taskhive.services.todos import NoTenant, TaskRejected

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=list[CategoryRead])
async def list_categories(current: CurrentUser, session: Session) -> list[CategoryRead]:
    decision = authorize(await caller_of(session, current), Collection.CATEGORIES, Operation.READ)
    categories = await repo.list_categories(session, decision)
    return [CategoryRead.model_validate(c) for c in categories]


@router.post("", response_model=CategoryRead, status_code=status.HTTP_201_CREATED)
async def create_category(body: CategoryCreate, current: CurrentUser, session: Session) -> CategoryRead:
    caller = await caller_of(session, current)
    authorize(caller, Collection.CATEGORIES, Operation.CREATE)
    try:
        category = await repo.create_category(session, caller, body)
    except NoTenant as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except TaskRejected as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except repo.CategoryTaken as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A category with this name already exists",
        ) from exc
    return CategoryRead.model_validate(category)


@router.get("/{category_id}", response_model=CategoryRead)
async def get_category(category_id: uuid.UUID, current: CurrentUser, session: Session) -> CategoryRead:
    decision = authorize(await caller_of(session, current), Collection.CATEGORIES, Operation.READ)
    category = await _get_or_404(category_id, decision, session)
    return CategoryRead.model_validate(category)


@router.patch("/{category_id}", response_model=CategoryRead)
async def rename_category(
    category_id: uuid.UUID,
    body: CategoryUpdate,
    current: CurrentUser,
    session: Session,
) -> CategoryRead:
    decision = authorize(await caller_of(session, current), Collection.CATEGORIES, Operation.UPDATE)
    category = await _get_or_404(category_id, decision, session)
    try:
        category = await repo.rename_category(session, category, body)
    except repo.CategoryTaken as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A category with this name already exists",
        ) from exc
    return CategoryRead.model_validate(category)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(category_id: uuid.UUID, current: CurrentUser, session: Session) -> None:
    decision = authorize(await caller_of(session, current), Collection.CATEGORIES, Operation.DELETE)
    category = await _get_or_404(category_id, decision, session)
    await repo.delete_category(session, category)


# ── Internal helper ───────────────────────────────────────────

async def _get_or_404(category_id: uuid.UUID, decision: Decision, session) -> Category:
    category = await repo.get_category(session, decision, category_id)
    if category is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return category
