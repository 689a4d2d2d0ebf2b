"""Domain Enumerations - All status and type definitions"""
from enum import Enum
from typing import Dict


class RequestStatus(str, Enum):
    """Global request status"""
    BORRADOR = "borrador"
    ESPERANDO_TERCERO = "esperando_tercero"  # Waiting for an external guest to fill fields
    EN_REVISION = "en_revision"
    DEVUELTA = "devuelta"
    APROBADA = "aprobada"
    EN_EJECUCION = "en_ejecucion"
    EN_ESPERA = "en_espera"
    COMPLETADA = "completada"
    RECHAZADA = "rechazada"
    ANULADA = "anulada"


STATUS_LABELS: Dict[RequestStatus, str] = {
    RequestStatus.BORRADOR: "Borrador",
    RequestStatus.ESPERANDO_TERCERO: "Esperando Tercero",
    RequestStatus.EN_REVISION: "Pendiente de Aprobación",
    RequestStatus.DEVUELTA: "Devuelta",
    RequestStatus.APROBADA: "Aprobada",
    RequestStatus.EN_EJECUCION: "En Ejecución",
    RequestStatus.EN_ESPERA: "En Espera",
    RequestStatus.COMPLETADA: "Completada",
    RequestStatus.RECHAZADA: "Rechazada",
    RequestStatus.ANULADA: "Anulada",
}

# No further transitions except an admin override
TERMINAL_STATUSES = frozenset({
    RequestStatus.COMPLETADA,
    RequestStatus.RECHAZADA,
    RequestStatus.ANULADA,
})

# Statuses from which a request can be (re)submitted for review
SUBMITTABLE_STATUSES = frozenset({
    RequestStatus.BORRADOR,
    RequestStatus.ESPERANDO_TERCERO,
    RequestStatus.DEVUELTA,
})

# Statuses in which the executor group is told about a request
EXECUTION_VISIBLE_STATUSES = frozenset({
    RequestStatus.APROBADA,
    RequestStatus.EN_EJECUCION,
    RequestStatus.EN_ESPERA,
    RequestStatus.COMPLETADA,
    RequestStatus.ANULADA,
})


class StepStatus(str, Enum):
    """Runtime status per request workflow step"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SKIPPED = "skipped"


class FieldType(str, Enum):
    """Form field types"""
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    SELECT = "select"
    BOOLEAN = "boolean"
    TABLE = "table"
    FILE = "file"


class ColumnType(str, Enum):
    """Table column types"""
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    SELECT = "select"
    BOOLEAN = "boolean"


class ConditionOperator(str, Enum):
    """Operators for field conditions"""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"


class RuleLogic(str, Enum):
    """How the conditions of a rule are combined"""
    AND = "and"
    OR = "or"


class RuleEffect(str, Enum):
    """What a rule does when its conditions hold"""
    SHOW = "show"
    REQUIRED = "required"
    OPTIONS = "options"


class WorkflowAction(str, Enum):
    """Reviewer actions on an active step"""
    APPROVE = "approve"
    REJECT = "reject"
    RETURN = "return"


class NotificationEventType(str, Enum):
    """Event types emitted by request transitions"""
    STATUS_CHANGE = "status_change"
    STEP_APPROVED = "step_approved"
    LEVEL_ADVANCED = "level_advanced"
    NEW_COMMENT = "new_comment"


class NotificationStatus(str, Enum):
    """Notification outbox status"""
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
