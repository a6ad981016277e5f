"""
Heroku AppLink authorization broker.

The AppLink add-on stores JWT bearer authorizations created with
`heroku salesforce:authorizations:add:jwt`. AppLinkBroker fetches one by its
developer name through the heroku_applink SDK, which reads the add-on
attachment (HEROKU_APPLINK_API_URL / HEROKU_APPLINK_TOKEN, or a coloured
attachment) and HEROKU_APP_ID from the dyno environment.

Any object with an async `get_authorization(developer_name)` returning
something shaped like heroku_applink.Authorization (`org.user_auth.access_token`)
can stand in for AppLinkBroker (see AuthorizationBroker).
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import heroku_applink

logger = logging.getLogger(__name__)


class AuthorizationBroker(Protocol):
    async def get_authorization(self, developer_name: str) -> Any: ...


class AppLinkBroker:
    """
    Default broker backed by the heroku_applink SDK.

    Errors from the SDK (aiohttp client errors, EnvironmentError for a
    missing add-on attachment, KeyError / ValueError for a malformed
    payload) propagate unchanged; the delegated credential strategy
    classifies them.

    Example:
        >>> broker = AppLinkBroker()
        >>> auth = await broker.get_authorization("org_jwt")
        >>> auth.org.user_auth.access_token
    """

    __slots__ = ("_attachment_or_url",)

    def __init__(self, attachment_or_url: str | None = None):
        """
        Args:
            attachment_or_url: Add-on attachment name, colour or API URL;
                               the SDK's default attachment when None
        """
        self._attachment_or_url = attachment_or_url

    async def get_authorization(self, developer_name: str) -> heroku_applink.Authorization:
        logger.debug(f"[APPLINK] Fetching authorization '{developer_name}'")
        return await heroku_applink.get_authorization(developer_name, self._attachment_or_url)
