"""Project routes: public gallery, details, owner updates, upvotes."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from sonic.auth import get_current_user
from sonic.conversation.models import GUEST_OWNER, Project, Visibility
from sonic.conversation.project_store import write_project
from sonic.middleware.tier_check import ensure_premium
from sonic.models import (
    ProjectChatData,
    ProjectDetailData,
    ProjectSummary,
    ProjectUpdateRequest,
    VisibilityRequest,
)
from sonic.models_db import User
from sonic.routes.ai import get_project_store

logger = logging.getLogger(__name__)

router = APIRouter()

NOT_FOUND = {"success": False, "flag": "none", "message": "Project not found"}


def _summary_fields(project: Project) -> dict:
    return dict(
        id=project.conversation_id,
        thumbnail=project.thumbnail,
        chai_count=project.chai_count,
        title=project.title,
        description=project.description,
        features=project.features,
        main_color_theme=project.main_color_theme,
        secondary_color_theme=project.secondary_color_theme,
        created_at=project.created_at,
    )


def _visible_to(project: Project, user: User) -> bool:
    if project.visibility == Visibility.PUBLIC:
        return True
    return project.owner_id in (user.id, GUEST_OWNER)


def _ensure_owner(project: Project, user: User, action: str) -> None:
    if project.owner_id not in (user.id, GUEST_OWNER):
        raise HTTPException(status_code=403, detail=f"Only project owner can {action}")


@router.get("/projects/public")
async def list_public_projects(
    current_user: User = Depends(get_current_user),
    store=Depends(get_project_store),
):
    """Generated projects anyone may browse, newest first."""
    projects = await store.list_public()
    return {
        "success": True,
        "data": [
            ProjectSummary(**_summary_fields(p)).model_dump(mode="json", by_alias=True)
            for p in projects
        ],
    }


@router.get("/projects/{conversation_id}/details")
async def get_project_details(
    conversation_id: str,
    current_user: User = Depends(get_current_user),
    store=Depends(get_project_store),
):
    project = await store.get(conversation_id)
    if project is None or not _visible_to(project, current_user):
        return NOT_FOUND

    data = ProjectDetailData(
        **_summary_fields(project),
        owner=project.owner_id,
        files=[f.model_dump(mode="json") for f in project.files],
        chat_history=[t.model_dump(mode="json") for t in project.chat_history],
        code=project.code,
        visibility=project.visibility,
    )
    return {"success": True, "data": data.model_dump(mode="json", by_alias=True)}


@router.get("/projects/chat/{conversation_id}")
async def get_project_chat(
    conversation_id: str,
    current_user: User = Depends(get_current_user),
    store=Depends(get_project_store),
):
    project = await store.get(conversation_id)
    if project is None or not _visible_to(project, current_user):
        return NOT_FOUND

    data = ProjectChatData(
        id=project.conversation_id,
        chat_history=[t.model_dump(mode="json") for t in project.chat_history],
        code=project.code,
    )
    return {"success": True, "data": data.model_dump(mode="json", by_alias=True)}


@router.put("/projects/{conversation_id}")
async def update_project(
    conversation_id: str,
    body: ProjectUpdateRequest,
    current_user: User = Depends(get_current_user),
    store=Depends(get_project_store),
):
    """Owner edits of title, description, thumbnail, upvotes and themes."""
    updates = body.model_dump(exclude_unset=True, exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No updates provided")

    existing = await store.get(conversation_id)
    if existing is None:
        raise HTTPException(status_code=404, detail="Project not found")
    _ensure_owner(existing, current_user, "update project")

    def apply(project: Project) -> None:
        for field, value in updates.items():
            setattr(project, field, value)

    project = await write_project(store, conversation_id, apply)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")

    logger.info("Project %s updated by %s: %s", conversation_id, current_user.id, sorted(updates))
    return {
        "success": True,
        "message": "Project updated successfully",
        "data": {
            "id": project.conversation_id,
            "title": project.title,
            "description": project.description,
            "thumbnail": project.thumbnail,
            "mainColorTheme": project.main_color_theme,
            "secondaryColorTheme": project.secondary_color_theme,
        },
    }


@router.put("/projects/visibility/{conversation_id}")
async def change_visibility(
    conversation_id: str,
    body: VisibilityRequest,
    current_user: User = Depends(get_current_user),
    store=Depends(get_project_store),
):
    existing = await store.get(conversation_id)
    if existing is None:
        raise HTTPException(status_code=404, detail="Project not found")
    _ensure_owner(existing, current_user, "change visibility")
    if body.visibility == Visibility.PRIVATE:
        ensure_premium(current_user, "private projects")

    def apply(project: Project) -> None:
        project.visibility = body.visibility

    project = await write_project(store, conversation_id, apply)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return {
        "success": True,
        "message": "Project visibility updated successfully",
        "data": {"visibility": project.visibility.value},
    }


@router.post("/projects/{conversation_id}/upvote")
async def upvote_project(
    conversation_id: str,
    current_user: User = Depends(get_current_user),
    store=Depends(get_project_store),
):
    chai_count = await store.increment_upvotes(conversation_id)
    if chai_count is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return {
        "success": True,
        "message": "Project upvoted successfully",
        "data": {"chai_count": chai_count, "upvoted": True},
    }
