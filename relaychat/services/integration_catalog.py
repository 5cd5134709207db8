"""Static catalog of third-party integrations.

Each entry names the Composio toolkit backing the integration and the
auth config used to start its OAuth flow. Auth config ids default to the
Composio toolkit key and can be overridden per deployment with
``COMPOSIO_<SLUG>_AUTH_CONFIG_ID``.
"""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Integration:
    """Catalog entry for a third-party integration.

    Attributes:
        name: Display name, also the key used in persisted connections.
        app_id: Composio toolkit slug.
        auth_config_id: Composio auth config used to initiate OAuth. None
            for toolkits that need no user authorization.
        description: One-line summary shown in the integrations list.
        logo: Relative logo path for clients.
    """

    name: str
    app_id: str
    auth_config_id: str | None
    description: str
    logo: str

    @property
    def requires_auth(self) -> bool:
        """Whether users must connect an account before using the toolkit."""
        return self.auth_config_id is not None

    def to_dict(self, connected: bool = False) -> dict:
        """Serialize for API responses."""
        return {
            "name": self.name,
            "appId": self.app_id,
            "description": self.description,
            "logo": self.logo,
            "connected": connected,
        }


SEARCH_INTEGRATION_NAME = "Composio Search"

# (name, app_id, env slug, default auth config, description, logo)
_CATALOG: tuple[tuple[str, str, str | None, str | None, str, str], ...] = (
    ("Gmail", "gmail", "GMAIL", "GMAIL",
     "Send and manage emails", "/logos/gmail.svg"),
    ("Google Calendar", "google-calendar", "GOOGLE_CALENDAR", "GOOGLECALENDAR",
     "Manage calendar events", "/logos/google-calendar.svg"),
    ("Google Docs", "google-docs", "GOOGLE_DOCS", "GOOGLEDOCS",
     "Create and edit documents", "/logos/google-docs.svg"),
    ("Google Sheets", "google-sheets", "GOOGLE_SHEETS", "GOOGLESHEETS",
     "Create and edit spreadsheets", "/logos/google-sheets.svg"),
    ("Google Drive", "google-drive", "GOOGLE_DRIVE", "GOOGLEDRIVE",
     "Manage Google Drive files and folders", "/logos/google-drive.svg"),
    ("Notion", "notion", "NOTION", "NOTION",
     "Manage Notion pages and databases", "/logos/notion.svg"),
    ("Slack", "slack", "SLACK", "SLACK",
     "Send messages and manage channels", "/logos/slack.svg"),
    ("X (Twitter)", "twitter", "TWITTER", "TWITTER",
     "Post tweets and manage account", "/logos/twitter.png"),
    ("LinkedIn", "linkedin", "LINKEDIN", "LINKEDIN",
     "Manage LinkedIn posts and connections", "/logos/linkedin.svg"),
    ("Facebook", "facebook", "FACEBOOK", "FACEBOOK",
     "Manage Facebook posts and pages", "/logos/facebook.svg"),
    (SEARCH_INTEGRATION_NAME, "composio_search", None, None,
     "Web, news, and research search", "/logos/search.svg"),
)


def _resolve_auth_config_id(env_slug: str | None, default: str | None) -> str | None:
    if env_slug is None:
        return default
    override = os.environ.get(f"COMPOSIO_{env_slug}_AUTH_CONFIG_ID", "").strip()
    return override or default


def get_integrations() -> list[Integration]:
    """Build the catalog, applying auth config overrides from the environment.

    Returns:
        Every catalog entry in display order.
    """
    return [
        Integration(
            name=name,
            app_id=app_id,
            auth_config_id=_resolve_auth_config_id(env_slug, default),
            description=description,
            logo=logo,
        )
        for name, app_id, env_slug, default, description, logo in _CATALOG
    ]


def get_integration(name: str) -> Integration | None:
    """Look up a catalog entry by display name.

    Args:
        name: Integration display name (e.g. 'Google Drive').

    Returns:
        Integration if found, None otherwise.
    """
    for integration in get_integrations():
        if integration.name == name:
            return integration
    return None
