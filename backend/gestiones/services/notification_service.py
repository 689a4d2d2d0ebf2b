"""Notification Service - Recipient and template resolution for request events

Transitions hand a NotificationDispatch to this service. It resolves the
configured event, renders the in-app and e-mail templates, works out the
recipients and enqueues one outbox entry. Delivery is done elsewhere.
"""
import re
from typing import Dict, List, Optional

from ..domain.models import (
    NotificationDispatch, NotificationOutbox, NotificationConfig, Request,
    format_request_number
)
from ..domain.enums import RequestStatus, STATUS_LABELS, EXECUTION_VISIBLE_STATUSES
from ..repositories.notification_repo import NotificationRepository
from ..repositories.user_repo import UserRepository
from ..repositories.request_repo import RequestRepository
from ..repositories.schema_repo import SchemaRepository
from ..config.settings import settings
from ..utils.idgen import generate_notification_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def render_template(template: str, variables: Dict[str, str]) -> str:
    """Replace {{name}} placeholders; unknown names render empty"""
    return _PLACEHOLDER.sub(lambda m: variables.get(m.group(1), ""), template)


class NotificationService:
    """Fan-out policy for request notifications"""

    def __init__(
        self,
        repo: Optional[NotificationRepository] = None,
        user_repo: Optional[UserRepository] = None,
        request_repo: Optional[RequestRepository] = None,
        schema_repo: Optional[SchemaRepository] = None,
        frontend_url: Optional[str] = None
    ):
        self.repo = repo or NotificationRepository()
        self.user_repo = user_repo or UserRepository()
        self.request_repo = request_repo or RequestRepository()
        self.schema_repo = schema_repo or SchemaRepository()
        self.frontend_url = (frontend_url or settings.frontend_url).rstrip("/")

    # =========================================================================
    # Resolution
    # =========================================================================

    def build_variables(self, dispatch: NotificationDispatch, request: Request) -> Dict[str, str]:
        user = self.user_repo.get_user(dispatch.triggered_by)

        template_name = "General"
        if request.template_id:
            template = self.schema_repo.get_template(request.template_id)
            if template and template.name:
                template_name = template.name

        new_status = dispatch.new_status or request.status
        return {
            "user_name": user.name if user else "",
            "request_title": request.title,
            "request_number": format_request_number(request.request_number),
            "template_name": template_name,
            "new_status": STATUS_LABELS[new_status],
            "comment": dispatch.comment or "",
            "request_url": f"{self.frontend_url}/requests/{request.id}",
        }

    def resolve_recipients(
        self,
        config: NotificationConfig,
        request: Request,
        triggered_by: str,
        status: Optional[RequestStatus] = None
    ) -> List[str]:
        """
        Users holding a target role, plus the creator when configured

        Role holders are scoped to the request:
        - administrators are always included
        - group-scoped roles only when they belong to the request's group
        - executors only from the template's executor group, once the
          request is approved or later
        - any other role when it approves in the request's workflow, or
          otherwise when its holder is in the executor group

        The user who triggered the event is never notified. Order is
        preserved and duplicates removed.
        """
        status = status or request.status
        executor_group_id = None
        if request.template_id:
            template = self.schema_repo.get_template(request.template_id)
            executor_group_id = template.executor_group_id if template else None
        workflow_roles = {step.role_name for step in self.request_repo.get_steps(request.id)}

        candidates: List[str] = []
        for role in config.target_roles:
            if role == settings.admin_role:
                candidates.extend(self.user_repo.list_user_ids_by_roles([role]))
            elif role in settings.group_scoped_roles_list:
                if request.group_id:
                    candidates.extend(self.user_repo.list_user_ids_by_roles([role], group_id=request.group_id))
            elif role == settings.executor_role:
                if executor_group_id and status in EXECUTION_VISIBLE_STATUSES:
                    candidates.extend(self.user_repo.list_user_ids_by_roles([role], group_id=executor_group_id))
            elif role in workflow_roles:
                candidates.extend(self.user_repo.list_user_ids_by_roles([role]))
            elif executor_group_id:
                candidates.extend(self.user_repo.list_user_ids_by_roles([role], group_id=executor_group_id))

        if config.include_creator:
            candidates.append(request.created_by)

        recipients: List[str] = []
        for user_id in candidates:
            if user_id == triggered_by or user_id in recipients:
                continue
            recipients.append(user_id)
        return recipients

    # =========================================================================
    # Dispatch
    # =========================================================================

    def dispatch(self, dispatch: NotificationDispatch) -> Optional[NotificationOutbox]:
        """
        Resolve and enqueue a notification

        Returns:
            The outbox entry, or None when nothing is configured or
            nobody is left to notify
        """
        event_key = dispatch.event_key
        log_extra = {"request_id": dispatch.request_id, "event_key": event_key}

        event = self.repo.get_event(event_key)
        if event is None or not event.is_active:
            logger.debug(f"No active notification event for {event_key}", extra=log_extra)
            return None

        config = self.repo.get_config(event.id)
        if config is None:
            logger.debug(f"Notification event {event_key} has no config", extra=log_extra)
            return None

        if not (config.channel_inapp or config.channel_email):
            logger.debug(f"All channels disabled for {event_key}", extra=log_extra)
            return None

        request = self.request_repo.get_request_or_raise(dispatch.request_id)
        recipients = self.resolve_recipients(config, request, dispatch.triggered_by, dispatch.new_status)
        if not recipients:
            logger.debug(f"No recipients for {event_key}", extra=log_extra)
            return None

        variables = self.build_variables(dispatch, request)

        entry = NotificationOutbox(
            id=generate_notification_id(),
            request_id=request.id,
            event_key=event_key,
            recipients=recipients,
            channel_inapp=config.channel_inapp,
            channel_email=config.channel_email,
            title=render_template(config.inapp_title_template, variables) or dispatch.title,
            body=render_template(config.inapp_body_template, variables) or dispatch.message,
            email_subject=render_template(config.email_subject_template, variables) or dispatch.title,
            email_body=render_template(config.email_body_template, variables) or dispatch.message,
            variables=variables,
            created_at=utc_now(),
        )
        return self.repo.create_outbox_entry(entry)

    def dispatch_safely(self, dispatch: NotificationDispatch) -> Optional[NotificationOutbox]:
        """Fire-and-forget form of dispatch used by transitions"""
        try:
            return self.dispatch(dispatch)
        except Exception as e:
            # Never fail a committed transition because of a notification
            logger.warning(
                f"Failed to enqueue notification: {e}",
                extra={"request_id": dispatch.request_id, "action": dispatch.event_type}
            )
            return None
