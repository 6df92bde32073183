# src/antigravity_bridge/auth.py
"""
Credential collaborator interface.

OAuth login, token storage and refresh live outside the bridge; the bridge
only asks for a valid bearer token right before each request.
"""

import os
from abc import ABC, abstractmethod
from typing import Optional


class CredentialSource(ABC):
    """Supplies bearer tokens (and optionally the project id) for requests."""

    @abstractmethod
    async def get_valid_bearer_token(self, prompt_if_missing: bool) -> Optional[str]:
        """
        Return a non-expired access token.

        When `prompt_if_missing` is true the implementation may start an
        interactive login; otherwise it returns None if no token is stored.
        """
        pass

    def get_project_id(self) -> Optional[str]:
        return None


class StaticCredentialSource(CredentialSource):
    def __init__(self, access_token: Optional[str], project_id: Optional[str] = None):
        self._access_token = access_token
        self._project_id = project_id

    async def get_valid_bearer_token(self, prompt_if_missing: bool) -> Optional[str]:
        return self._access_token

    def get_project_id(self) -> Optional[str]:
        return self._project_id


class EnvCredentialSource(CredentialSource):
    """
    Reads ANTIGRAVITY_ACCESS_TOKEN and ANTIGRAVITY_PROJECT_ID (falling back to
    GOOGLE_CLOUD_PROJECT) at call time, so a refreshed token is picked up.
    """

    async def get_valid_bearer_token(self, prompt_if_missing: bool) -> Optional[str]:
        token = os.getenv("ANTIGRAVITY_ACCESS_TOKEN", "").strip()
        return token or None

    def get_project_id(self) -> Optional[str]:
        return os.getenv("ANTIGRAVITY_PROJECT_ID") or os.getenv("GOOGLE_CLOUD_PROJECT") or None
