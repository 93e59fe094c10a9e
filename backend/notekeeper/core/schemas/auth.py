from __future__ import annotations

from notekeeper.core.models.base import AppBaseModel


class AuthUser(AppBaseModel):
    """Caller identity taken from a verified Supabase access token.

    ``id`` keys every note, topic and sync session owned by the caller.
    """

    id: str
    email: str | None = None
    role: str | None = None
