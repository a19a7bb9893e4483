"""HTTP routes for catalogs, entry links, and sharing."""

from __future__ import annotations

from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel, ConfigDict, StringConstraints
from pydantic.alias_generators import to_camel

from .auth import get_actor_id
from .catalog import ImageContext, ShareRole
from .catalog.types import DESCRIPTION_MAX_LENGTH, NAME_MAX_LENGTH
from .service import CatalogService

router = APIRouter()

# Configuration - set by configure()
_service: CatalogService | None = None


def configure(service: CatalogService) -> None:
    """Configure the routes with the catalog service."""
    global _service
    _service = service


def get_service() -> CatalogService:
    if _service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Catalog service not configured",
        )
    return _service


Actor = Annotated[str, Depends(get_actor_id)]
Service = Annotated[CatalogService, Depends(get_service)]


def _image_context(request: Request) -> ImageContext:
    return ImageContext(scheme=request.url.scheme, host=request.headers.get("host"))


# =============================================================================
# Request models
# =============================================================================

CatalogName = Annotated[
    str, StringConstraints(strip_whitespace=True, min_length=1, max_length=NAME_MAX_LENGTH)
]
CatalogDescription = Annotated[
    str, StringConstraints(strip_whitespace=True, max_length=DESCRIPTION_MAX_LENGTH)
]


class _RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class CreateCatalogRequest(_RequestModel):
    name: CatalogName
    description: CatalogDescription | None = None


class UpdateCatalogRequest(_RequestModel):
    name: CatalogName | None = None
    description: CatalogDescription | None = None


class InviteCollaboratorRequest(_RequestModel):
    invitee_id: str
    role: ShareRole = ShareRole.VIEWER


class UpdateCollaboratorRequest(_RequestModel):
    role: ShareRole | None = None
    action: Literal["revoke"] | None = None


class RespondToInvitationRequest(_RequestModel):
    action: Literal["accept", "decline"]


def _envelope(message: str, **data: Any) -> dict[str, Any]:
    body: dict[str, Any] = {"message": message}
    if data:
        body["data"] = data
    return body


# =============================================================================
# Catalogs
# =============================================================================

@router.get("/catalogs", tags=["Catalogs"])
async def list_catalogs(actor: Actor, service: Service):
    """Catalogs owned by the caller, most recently updated first."""
    catalogs = await service.list_catalogs(actor)
    return _envelope(
        "Catalogs fetched successfully",
        catalogs=[c.to_dict() for c in catalogs],
    )


@router.post("/catalogs", status_code=status.HTTP_201_CREATED, tags=["Catalogs"])
async def create_catalog(body: CreateCatalogRequest, actor: Actor, service: Service):
    catalog = await service.create_catalog(actor, body.name, body.description)
    return _envelope("Catalog created successfully", catalog=catalog.to_dict())


@router.get("/catalogs/{catalog_id}", tags=["Catalogs"])
async def get_catalog(catalog_id: str, request: Request, actor: Actor, service: Service):
    """Catalog with its entries; readable by the owner and accepted collaborators."""
    data = await service.get_catalog(actor, catalog_id, _image_context(request))
    return _envelope("Catalog fetched successfully", **data)


@router.patch("/catalogs/{catalog_id}", tags=["Catalogs"])
async def update_catalog(
    catalog_id: str, body: UpdateCatalogRequest, actor: Actor, service: Service
):
    catalog = await service.update_catalog(actor, catalog_id, body.model_dump(exclude_unset=True))
    return _envelope("Catalog updated successfully", catalog=catalog.to_dict())


@router.delete("/catalogs/{catalog_id}", tags=["Catalogs"])
async def delete_catalog(catalog_id: str, actor: Actor, service: Service):
    await service.delete_catalog(actor, catalog_id)
    return _envelope("Catalog deleted successfully")


# =============================================================================
# Entry links
# =============================================================================

@router.post("/catalogs/{catalog_id}/entries/{entry_id}", tags=["Catalogs"])
async def link_entry(
    catalog_id: str, entry_id: str, request: Request, actor: Actor, service: Service
):
    catalog, entries = await service.link_entry(
        actor, catalog_id, entry_id, _image_context(request)
    )
    return _envelope(
        "Entry linked to catalog successfully",
        catalog=catalog.to_dict(),
        entries=entries,
    )


@router.delete("/catalogs/{catalog_id}/entries/{entry_id}", tags=["Catalogs"])
async def unlink_entry(
    catalog_id: str, entry_id: str, request: Request, actor: Actor, service: Service
):
    catalog, entries = await service.unlink_entry(
        actor, catalog_id, entry_id, _image_context(request)
    )
    return _envelope(
        "Entry unlinked from catalog successfully",
        catalog=catalog.to_dict(),
        entries=entries,
    )


# =============================================================================
# Collaborators (owner side)
# =============================================================================

@router.get("/catalogs/{catalog_id}/collaborators", tags=["Sharing"])
async def list_collaborators(catalog_id: str, actor: Actor, service: Service):
    shares = await service.list_collaborators(actor, catalog_id)
    return _envelope(
        "Collaborators fetched successfully",
        collaborators=[s.to_dict() for s in shares],
    )


@router.post(
    "/catalogs/{catalog_id}/collaborators",
    status_code=status.HTTP_201_CREATED,
    tags=["Sharing"],
)
async def invite_collaborator(
    catalog_id: str,
    body: InviteCollaboratorRequest,
    response: Response,
    actor: Actor,
    service: Service,
):
    """Invite a user; re-inviting a revoked collaborator restores the record (200)."""
    share, created = await service.invite_collaborator(
        actor, catalog_id, body.invitee_id, body.role
    )
    if not created:
        response.status_code = status.HTTP_200_OK
        return _envelope("Invitation re-sent successfully", invitation=share.to_dict())
    return _envelope("Invitation sent successfully", invitation=share.to_dict())


@router.patch("/catalogs/{catalog_id}/collaborators/{share_id}", tags=["Sharing"])
async def update_collaborator(
    catalog_id: str,
    share_id: str,
    body: UpdateCollaboratorRequest,
    actor: Actor,
    service: Service,
):
    share = await service.update_collaborator(
        actor, catalog_id, share_id, role=body.role, action=body.action
    )
    return _envelope("Collaborator updated successfully", invitation=share.to_dict())


# =============================================================================
# Invitations (invitee side)
# =============================================================================

@router.get("/catalog-shares/pending", tags=["Sharing"])
async def list_pending_invitations(actor: Actor, service: Service):
    invitations = await service.list_pending_invitations(actor)
    return _envelope("Pending invitations fetched successfully", invitations=invitations)


@router.get("/catalog-shares/shared-with-me", tags=["Sharing"])
async def list_shared_with_me(actor: Actor, service: Service):
    shares = await service.list_shared_with_me(actor)
    return _envelope("Shared catalogs fetched successfully", shares=shares)


@router.post("/catalog-shares/{share_id}/respond", tags=["Sharing"])
async def respond_to_invitation(
    share_id: str, body: RespondToInvitationRequest, actor: Actor, service: Service
):
    share = await service.respond_to_invitation(actor, share_id, body.action)
    past = "accepted" if body.action == "accept" else "declined"
    return _envelope(f"Invitation {past} successfully", invitation=share.to_dict())
