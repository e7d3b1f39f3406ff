"""
Authentication module for JSolar Field Service.

Sign-in goes through Supabase Auth (email + password). The authenticated
user id is kept in Streamlit session state; the sync coordinator reads it
to attribute audit entries.
"""

from typing import Optional

import streamlit as st

from jsolar_core.errors import AuthenticationError
from jsolar_core.logging import get_logger

logger = get_logger(__name__)

SESSION_KEYS = ["authenticated", "user_id", "email"]


# ==================== SIGN IN / OUT ====================

def sign_in(client, email: str, password: str) -> str:
    """
    Sign in with Supabase Auth and record the user in session state.

    Args:
        client: Supabase client
        email: User email
        password: User password

    Returns:
        str: The authenticated user id

    Raises:
        AuthenticationError: if the credentials are rejected or Auth is unreachable
    """
    try:
        response = client.auth.sign_in_with_password({"email": email, "password": password})
    except Exception as e:
        raise AuthenticationError(f"Sign-in failed: {e}", email=email) from e

    user = getattr(response, "user", None)
    if user is None or not getattr(user, "id", None):
        raise AuthenticationError("Sign-in failed: no user returned", email=email)

    st.session_state.authenticated = True
    st.session_state.user_id = user.id
    st.session_state.email = getattr(user, "email", None) or email

    logger.info(f"User signed in: {st.session_state.email}")
    return user.id


def sign_out(client=None) -> None:
    """
    Sign out of Supabase Auth (if a client is given) and clear session state.
    """
    if client is not None:
        try:
            client.auth.sign_out()
        except Exception as e:
            # Local session is cleared regardless
            logger.warning(f"Supabase sign-out failed: {e}")

    for key in SESSION_KEYS:
        if key in st.session_state:
            del st.session_state[key]


# ==================== HELPER FUNCTIONS ====================

def check_authentication() -> bool:
    """
    Check if the current user is authenticated.

    Returns:
        bool: True if user is authenticated, False otherwise
    """
    return st.session_state.get("authenticated", False)


def get_current_user_id() -> Optional[str]:
    """
    Get the id of the currently authenticated user.

    Returns:
        Optional[str]: User id or None if not authenticated
    """
    if not check_authentication():
        return None

    return st.session_state.get("user_id")


def get_current_email() -> Optional[str]:
    if not check_authentication():
        return None

    return st.session_state.get("email")
