"""
Authentication module for JSolar Field Service.
Signs technicians in through Supabase Auth and exposes the current user id.
"""

from .authentication import (
    sign_in,
    sign_out,
    check_authentication,
    get_current_user_id,
    get_current_email,
)

__all__ = [
    "sign_in",
    "sign_out",
    "check_authentication",
    "get_current_user_id",
    "get_current_email",
]
