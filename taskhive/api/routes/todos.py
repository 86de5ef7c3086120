"""Todo CRUD: every query narrowed to the caller's tenant unless admin."""

import uuid
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, status

from taskhive.api.deps import CurrentUser, Session, authorize, caller_of
from taskhive.models.todo import Todo, TodoCreate, TodoPriority, TodoRead, TodoStatus, TodoUpdate
from taskhive.services import todos as repo
from taskhive.services.access_policy import Collection, Decision, Operation

router = APIRouter(prefix="/todos", tags=["todos"])


@router.get("", response_model=list[TodoRead])
async def list_todos(
    current: CurrentUser,
    session: Session,
    status_filter: Annotated[TodoStatus | None, Query(alias="status")] = None,
    priority: TodoPriority | None = None,
    assigned_to: uuid.UUID | None = None,
    category: uuid.UUID | None = None,
    search: str | None = None,
) -> list[TodoRead]:
    decision = authorize(await caller_of(session, current), Collection.TODOS, Operation.READ)
    query = repo.TodoQuery(
        status=status_filter,
        priority=priority,
        assigned_to_id=assigned_to,
        category_id=category,
        search=search,
    )
    todos = await repo.list_todos(session, decision, query)
    return [TodoRead.model_validate(t) for t in todos]


@router.post("", response_model=TodoRead, status_code=status.HTTP_201_CREATED)
async def create_todo(body: TodoCreate, current: CurrentUser, session: Session) -> TodoRead:
    caller = await caller_of(session, current)
    authorize(caller, Collection.TODOS, Operation.CREATE)
    try:
        todo = await repo.create_todo(session, caller, body)
    except repo.NoTenant as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except repo.TaskRejected as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return TodoRead.model_validate(todo)


@router.get("/{todo_id}", response_model=TodoRead)
async def get_todo(todo_id: uuid.UUID, current: CurrentUser, session: Session) -> TodoRead:
    decision = authorize(await caller_of(session, current), Collection.TODOS, Operation.READ)
    todo = await _get_or_404(todo_id, decision, session)
    return TodoRead.model_validate(todo)


@router.patch("/{todo_id}", response_model=TodoRead)
async def update_todo(
    todo_id: uuid.UUID,
    body: TodoUpdate,
    current: CurrentUser,
    session: Session,
) -> TodoRead:
    caller = await caller_of(session, current)
    decision = authorize(caller, Collection.TODOS, Operation.UPDATE)
    todo = await _get_or_404(todo_id, decision, session)
    try:
        todo = await repo.update_todo(session, caller, todo, body)
    except repo.TaskRejected as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return TodoRead.model_validate(todo)


@router.delete("/{todo_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_todo(todo_id: uuid.UUID, current: CurrentUser, session: Session) -> None:
    decision = authorize(await caller_of(session, current), Collection.TODOS, Operation.DELETE)
    todo = await _get_or_404(todo_id, decision, session)
    await repo.delete_todo(session, todo)


# ── Internal helper ───────────────────────────────────────────

async def _get_or_404(todo_id: uuid.UUID, decision: Decision, session) -> Todo:
    todo = await repo.get_todo(session, decision, todo_id)
    if todo is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Todo not found")
    return todo
