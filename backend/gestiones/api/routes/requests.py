"""
Request Routes

Workflow progress, review actions, execution and administration of
requests. Each action returns the updated request, its steps and the
history row it wrote.
"""

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException

from ..deps import get_current_actor_dep, get_correlation_id_dep, get_request_service
from ...domain.models import ActorContext, Request, TransitionResult, WorkflowSnapshot
from ...domain.errors import DomainError
from ...services.request_service import RequestService
from ...utils.logger import get_logger
from .schemas import (
    CommentRequest, ChangeStatusRequest, CreateRequestRequest, UpdateRequestRequest,
    TransitionResponse, HistoryResponse
)

logger = get_logger(__name__)
router = APIRouter()


def _to_response(result: TransitionResult) -> TransitionResponse:
    return TransitionResponse(
        request=result.request,
        status_label=result.request.status_label,
        steps=result.steps,
        history=result.history,
        event_key=result.event_key,
    )


@router.post("", response_model=TransitionResponse, status_code=201)
async def create_request(
    request: CreateRequestRequest,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: RequestService = Depends(get_request_service)
):
    """
    Create a request from a template.

    With submit=true the data is validated and the request goes to review
    at once; otherwise it is saved as a draft.
    """
    try:
        result = service.create_request(
            actor,
            request.template_id,
            request.title,
            request.data_json,
            request.group_id,
            request.submit,
        )
        return _to_response(result)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.patch("/{request_id}", response_model=Request)
async def update_request(
    request_id: str,
    request: UpdateRequestRequest,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: RequestService = Depends(get_request_service)
):
    """Edit title or data of a draft or returned request"""
    try:
        return service.update_request(request_id, actor, request.title, request.data_json)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{request_id}/workflow", response_model=WorkflowSnapshot)
async def get_workflow(
    request_id: str,
    actor: ActorContext = Depends(get_current_actor_dep),
    service: RequestService = Depends(get_request_service)
):
    """Steps, current level and the step the caller may act on"""
    try:
        return service.get_workflow(request_id, actor)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.get("/{request_id}/history", response_model=HistoryResponse)
async def get_history(
    request_id: str,
    actor: ActorContext = Depends(get_current_actor_dep),
    service: RequestService = Depends(get_request_service)
):
    """Status history, oldest first"""
    try:
        items = service.get_history(request_id)
        return HistoryResponse(items=items, total=len(items))
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{request_id}/submit", response_model=TransitionResponse)
async def submit(
    request_id: str,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: RequestService = Depends(get_request_service)
):
    """
    Submit a draft, a returned request or one filled in by a third party.

    Stored data is validated first; errors come back keyed by field.
    """
    try:
        return _to_response(service.submit(request_id, actor))
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{request_id}/approve", response_model=TransitionResponse)
async def approve(
    request_id: str,
    request: CommentRequest,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: RequestService = Depends(get_request_service)
):
    """Approve the caller's step at the current level"""
    try:
        return _to_response(service.approve(request_id, actor, request.comment))
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{request_id}/reject", response_model=TransitionResponse)
async def reject(
    request_id: str,
    request: CommentRequest,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: RequestService = Depends(get_request_service)
):
    """Reject the request; a comment is required"""
    try:
        return _to_response(service.reject(request_id, actor, request.comment))
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{request_id}/return", response_model=TransitionResponse)
async def return_request(
    request_id: str,
    request: CommentRequest,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: RequestService = Depends(get_request_service)
):
    """Return the request to its creator; all steps restart. A comment is required"""
    try:
        return _to_response(service.return_request(request_id, actor, request.comment))
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{request_id}/annul", response_model=TransitionResponse)
async def annul(
    request_id: str,
    request: CommentRequest,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: RequestService = Depends(get_request_service)
):
    try:
        return _to_response(service.annul(request_id, actor, request.comment))
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{request_id}/await-third-party", response_model=TransitionResponse)
async def await_third_party(
    request_id: str,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: RequestService = Depends(get_request_service)
):
    """Park a draft until an external guest completes their fields"""
    try:
        return _to_response(service.await_third_party(request_id, actor))
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{request_id}/execution/{action}", response_model=TransitionResponse)
async def execution(
    request_id: str,
    action: Literal["start", "pause", "resume", "complete"],
    request: CommentRequest,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: RequestService = Depends(get_request_service)
):
    """Drive execution of an approved request (executors and administrators)"""
    try:
        return _to_response(service.execution(request_id, actor, action, request.comment))
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())


@router.post("/{request_id}/status", response_model=TransitionResponse)
async def change_status(
    request_id: str,
    request: ChangeStatusRequest,
    actor: ActorContext = Depends(get_current_actor_dep),
    correlation_id: str = Depends(get_correlation_id_dep),
    service: RequestService = Depends(get_request_service)
):
    """Force a status (administrators only)"""
    try:
        result = service.change_status(request_id, actor, request.status, request.comment)
        logger.info(
            f"Status of {request_id} forced to {request.status.value}",
            extra={"request_id": request_id, "actor_id": actor.user_id, "action": "change_status"}
        )
        return _to_response(result)
    except DomainError as e:
        raise HTTPException(status_code=e.http_status, detail=e.to_dict())
