"""
Seed Notifications Script - Creates the default notification events
Run: python -m scripts.seed_notifications

Existing events are replaced, so re-running resets them to the defaults.
"""
from gestiones.repositories.mongo_client import create_indexes
from gestiones.repositories.notification_repo import NotificationRepository
from gestiones.domain.models import NotificationEvent, NotificationConfig
from gestiones.domain.enums import RequestStatus, NotificationEventType, STATUS_LABELS
from gestiones.config.settings import settings

TITLE_TEMPLATE = "{{template_name}} Solicitud #{{request_number}}"
EMAIL_SUBJECT_TEMPLATE = "[{{template_name}}] Solicitud #{{request_number}}"

# Events that are not tied to a status change
OTHER_EVENTS = [
    (
        NotificationEventType.STEP_APPROVED.value,
        "Paso aprobado",
        "{{user_name}} aprobó un paso de la solicitud {{request_title}}",
    ),
    (
        NotificationEventType.LEVEL_ADVANCED.value,
        "Nivel completado",
        "La solicitud {{request_title}} pasó al siguiente nivel de aprobación",
    ),
    (
        NotificationEventType.NEW_COMMENT.value,
        "Nuevo comentario",
        "{{user_name}} comentó en la solicitud {{request_title}}: {{comment}}",
    ),
]


def build_defaults():
    """Default (event, config) pairs: one per status plus the workflow events"""
    defaults = []

    for status in RequestStatus:
        label = STATUS_LABELS[status]
        event_key = f"status_to_{status.value}"
        event = NotificationEvent(
            id=f"EVT-{event_key}",
            event_key=event_key,
            name=f"Cambio a {label}",
            description=f"La solicitud pasa a estado {label}",
            is_system=True,
            is_active=status != RequestStatus.BORRADOR,
        )
        body = "{{user_name}} cambió el estado de la solicitud {{request_title}} a {{new_status}}"
        defaults.append((event, NotificationConfig(
            event_id=event.id,
            target_roles=[settings.admin_role],
            include_creator=True,
            channel_inapp=True,
            channel_email=False,
            inapp_title_template=TITLE_TEMPLATE,
            inapp_body_template=body,
            email_subject_template=EMAIL_SUBJECT_TEMPLATE,
            email_body_template=f"<p>{body}</p><p><a href=\"{{{{request_url}}}}\">Ver solicitud</a></p>",
        )))

    for event_key, name, body in OTHER_EVENTS:
        event = NotificationEvent(
            id=f"EVT-{event_key}",
            event_key=event_key,
            name=name,
            is_system=True,
            is_active=True,
        )
        defaults.append((event, NotificationConfig(
            event_id=event.id,
            target_roles=[settings.admin_role],
            include_creator=True,
            inapp_title_template=TITLE_TEMPLATE,
            inapp_body_template=body,
        )))

    return defaults


def main():
    print("Creating indexes...")
    create_indexes()

    repo = NotificationRepository()
    defaults = build_defaults()
    for event, config in defaults:
        repo.upsert_event(event, config)
        print(f"  {event.event_key} ({'active' if event.is_active else 'inactive'})")

    print(f"Seeded {len(defaults)} notification events")


if __name__ == "__main__":
    main()
