"""
Typed action schemas for Browser Control.

Provides Pydantic models for every action's parameters. Requests are
validated before anything touches the page; invalid input never causes a
partial side effect. Field names are snake_case but camelCase aliases are
accepted, since planners often emit them.
"""

import re
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator
from pydantic.alias_generators import to_camel


_ALLOWED_URL_PREFIXES = ("http://", "https://", "file://", "about:", "data:")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Defaults for federated login popups (Google's account chooser layout)
DEFAULT_IDENTITY_SELECTOR = 'input[type="email"]'
DEFAULT_NEXT_SELECTOR = 'button:has-text("Next")'
DEFAULT_PASSWORD_FIELD_SELECTOR = 'input[type="password"]'

FEDERATED_METHODS = ("google", "facebook", "github")


def normalize_url(v: str) -> str:
    """Validate a URL, assuming https when no protocol is given."""
    v = (v or "").strip()
    if not v:
        raise ValueError("URL cannot be empty")
    if any(c.isspace() for c in v):
        raise ValueError("URL cannot contain whitespace")
    if v.startswith(_ALLOWED_URL_PREFIXES):
        return v
    if "://" in v:
        raise ValueError("URL scheme must be one of: " + ", ".join(_ALLOWED_URL_PREFIXES))
    # Assume https if no protocol
    return f"https://{v}"


def _require_selector(v: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError("Selector cannot be empty")
    return v


class ActionRequest(BaseModel):
    """Base for all action parameter models."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Navigation and interaction
# =============================================================================

class NavigateRequest(ActionRequest):
    """Request to navigate to a URL."""

    url: str = Field(description="The full URL to navigate to.")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return normalize_url(v)


class ClickRequest(ActionRequest):
    """Request to click an element."""

    selector: str = Field(description="A CSS selector or XPath for the element to click.")
    description: Optional[str] = Field(
        default=None,
        description="A description of the element to click (e.g., 'Login button').",
    )

    @field_validator("selector")
    @classmethod
    def validate_selector(cls, v: str) -> str:
        return _require_selector(v)


class TypeTextRequest(ActionRequest):
    """Request to type text into an input field, replacing its content."""

    selector: str = Field(description="A CSS selector or XPath for the input field.")
    text: str = Field(description="The text to type into the input field.")
    description: Optional[str] = Field(
        default=None,
        description="A description of the input field (e.g., 'Search box').",
    )

    @field_validator("selector")
    @classmethod
    def validate_selector(cls, v: str) -> str:
        return _require_selector(v)


class ExtractDataRequest(ActionRequest):
    """Request to extract text or an attribute from matching elements."""

    selector: str = Field(description="CSS selector or XPath of the element(s) to extract data from.")
    attribute: Optional[str] = Field(
        default=None,
        description="Attribute to extract (e.g., 'href', 'src'). If omitted, extracts text content.",
    )
    multiple: bool = Field(
        default=False,
        description="Whether to extract every element matching the selector.",
    )
    description: Optional[str] = Field(
        default=None,
        description="Optional description of the data to extract.",
    )

    @field_validator("selector")
    @classmethod
    def validate_selector(cls, v: str) -> str:
        return _require_selector(v)

    @field_validator("attribute")
    @classmethod
    def validate_attribute(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        return v or None


class CloseOverlayRequest(ActionRequest):
    """Request to close or remove an overlay.

    Without a selector the full heuristic overlay scan runs instead.
    """

    selector: Optional[str] = Field(
        default=None,
        description="CSS selector for the overlay or close button to remove. "
                    "Omit to scan for common popups, modals and cookie banners.",
    )

    @field_validator("selector")
    @classmethod
    def validate_selector(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _require_selector(v)


class CloseBrowserRequest(ActionRequest):
    """Request to close the browser session. Takes no parameters."""


# =============================================================================
# Authentication
# =============================================================================

class LoginRequest(ActionRequest):
    """Request to log into a website with credentials or a federated provider.

    NOTE: ``password`` is a SecretStr and never appears in reprs or logs.
    """

    login_page_url: str = Field(description="URL of the website login page.")
    login_method: Literal["google", "facebook", "github", "username_password"] = Field(
        description="Login method to use."
    )
    email_or_username: str = Field(description="Email or username for login.")
    password: Optional[SecretStr] = Field(
        default=None,
        description="Password (required for username/password, optional for OAuth).",
    )
    oauth_button_selector: Optional[str] = Field(
        default=None,
        description="CSS selector for the OAuth login button (Google, Facebook, GitHub).",
    )
    username_selector: Optional[str] = Field(
        default=None, description="CSS selector for the username/email input field."
    )
    password_selector: Optional[str] = Field(
        default=None, description="CSS selector for the password input field."
    )
    submit_selector: Optional[str] = Field(
        default=None, description="CSS selector for the submit/login button."
    )
    identity_selector: str = Field(
        default=DEFAULT_IDENTITY_SELECTOR,
        description="Identity field inside the provider popup.",
    )
    next_selector: str = Field(
        default=DEFAULT_NEXT_SELECTOR,
        description="Button advancing the provider popup.",
    )
    password_field_selector: str = Field(
        default=DEFAULT_PASSWORD_FIELD_SELECTOR,
        description="Password field inside the provider popup.",
    )

    @field_validator("login_page_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return normalize_url(v)

    @field_validator("email_or_username")
    @classmethod
    def validate_identity(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Email or username cannot be empty")
        return v

    @model_validator(mode="after")
    def check_method_selectors(self) -> "LoginRequest":
        """Fail before any page interaction when a required selector is missing."""
        if self.login_method == "username_password":
            missing = [
                name for name in ("username_selector", "password_selector", "submit_selector")
                if not (getattr(self, name) or "").strip()
            ]
            if missing:
                raise ValueError(
                    "Missing selectors for username/password login: " + ", ".join(missing)
                )
        elif not (self.oauth_button_selector or "").strip():
            raise ValueError("Missing OAuth button selector.")
        return self

    @property
    def is_federated(self) -> bool:
        return self.login_method in FEDERATED_METHODS


class LoginWithGoogleRequest(ActionRequest):
    """Request to log in through a 'Sign in with Google' button."""

    email: str = Field(description="Google account email address.")
    password: Optional[SecretStr] = Field(
        default=None, description="Google account password (if required)."
    )
    login_page_url: str = Field(description="URL of the website login page.")
    google_button_selector: str = Field(
        description="CSS selector for the 'Login with Google' button."
    )

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = (v or "").strip()
        if not _EMAIL_RE.match(v):
            raise ValueError("Must be an email address")
        return v

    @field_validator("login_page_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return normalize_url(v)

    @field_validator("google_button_selector")
    @classmethod
    def validate_selector(cls, v: str) -> str:
        return _require_selector(v)

    def to_login_request(self) -> LoginRequest:
        """Express this request as a generic federated login."""
        return LoginRequest(
            login_page_url=self.login_page_url,
            login_method="google",
            email_or_username=self.email,
            password=self.password,
            oauth_button_selector=self.google_button_selector,
        )


# =============================================================================
# Extraction assist and user interaction
# =============================================================================

class SmartExtractRequest(ActionRequest):
    """Request to extract data with a natural-language query."""

    query: str = Field(
        description="Natural language description of the data to extract, e.g., 'list all shoes under 1000'."
    )
    selector: Optional[str] = Field(
        default=None,
        description="Optional CSS selector or XPath to scope the extraction.",
    )

    @field_validator("query")
    @classmethod
    def validate_query(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Query cannot be empty")
        return v

    @field_validator("selector")
    @classmethod
    def validate_selector(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None


class AskUserRequest(ActionRequest):
    """Request to ask the human operator a question."""

    question: str = Field(description="The question to ask the user.")

    @field_validator("question")
    @classmethod
    def validate_question(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Question cannot be empty")
        return v
