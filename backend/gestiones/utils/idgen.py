"""ID Generation Utilities"""
import uuid
from .time import utc_now
from typing import Optional


def generate_id(prefix: Optional[str] = None) -> str:
    """
    Generate a unique ID with optional prefix
    
    Args:
        prefix: Optional prefix for the ID (e.g., 'STEP', 'HIST')
        
    Returns:
        Unique ID string
        
    Examples:
        >>> generate_id('STEP')
        'STEP-a1b2c3d4e5f6'
    """
    unique_part = uuid.uuid4().hex[:12]
    
    if prefix:
        return f"{prefix}-{unique_part}"
    return unique_part


def generate_request_step_id() -> str:
    """Generate request workflow step ID"""
    return generate_id("STEP")


def generate_history_id() -> str:
    """Generate status history entry ID"""
    return generate_id("HIST")


def generate_notification_id() -> str:
    """Generate notification outbox ID"""
    return generate_id("NTF")


def generate_correlation_id() -> str:
    """
    Generate a correlation ID for request tracing
    
    Returns:
        Correlation ID string with timestamp prefix
    """
    timestamp = utc_now().strftime("%Y%m%d%H%M%S")
    unique_part = uuid.uuid4().hex[:8]
    return f"COR-{timestamp}-{unique_part}"


def generate_request_id() -> str:
    """Generate request ID"""
    return generate_id("REQ")
