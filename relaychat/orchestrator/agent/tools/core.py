"""Shared internals for integration tools.

Contains the per-turn ToolContext, the ToolOutcome tagged union returned
by every tool, the error classifier, and the two adapter classes every
integration module builds on: ComposioTool (one Composio action) and
AuthenticateTool (starts an integration's OAuth flow).

Tools never raise out of execute(); every failure becomes an error
outcome the model can read and react to.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal, Protocol

from pydantic import BaseModel, ConfigDict, ValidationError

from relaychat.orchestrator.agent.writer import MessageStreamWriter
from relaychat.services.composio_client import ComposioClient
from relaychat.services.integration_auth import IntegrationAuthManager
from relaychat.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)

OutcomeKind = Literal["ok", "auth_required", "error"]


# ---------------------------------------------------------------------------
# Turn Context
# ---------------------------------------------------------------------------


@dataclass
class ToolContext:
    """Per-turn state handed to every tool factory.

    Attributes:
        user_id: Authenticated user id, or None when no session exists.
        chat_id: Conversation the turn belongs to.
        writer: Output writer for the in-flight assistant message.
        auth_manager: Connection lifecycle manager.
        composio: Composio REST client.
    """

    user_id: str | None
    chat_id: str
    writer: MessageStreamWriter | None
    auth_manager: IntegrationAuthManager
    composio: ComposioClient


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


@dataclass
class ToolOutcome:
    """Tagged result of a tool execution.

    Attributes:
        kind: 'ok', 'auth_required', or 'error'.
        message: User-facing message.
        data: Result payload (ok) or auth affordance (auth_required).
        error: Raw error text (error only).
        code: Machine-readable error class (error only), e.g.
            'validation_error', 'unauthenticated', 'tool_error',
            'tool_timeout', 'tool_not_found'.
    """

    kind: OutcomeKind
    message: str
    data: Any = None
    error: str | None = None
    code: str | None = None

    @classmethod
    def ok(cls, message: str, data: Any = None) -> "ToolOutcome":
        return cls(kind="ok", message=message, data=data)

    @classmethod
    def auth_required(
        cls,
        auth_url: str,
        integration_name: str,
        auth_tool_name: str,
    ) -> "ToolOutcome":
        message = (
            f"🔗 **{integration_name} Authentication Required**\n\n"
            f"To use {integration_name} features, you need to connect your "
            f"{integration_name} account first.\n\n"
            f"**Authentication URL:** {auth_url}\n\n"
            "Please click the authentication button below to connect your "
            "account. After authentication, you can retry your original request."
        )
        return cls(
            kind="auth_required",
            message=message,
            data={
                "requiresAuth": True,
                "authUrl": auth_url,
                "integrationName": integration_name,
                "authToolName": auth_tool_name,
            },
        )

    @classmethod
    def failure(cls, code: str, error: str, message: str | None = None) -> "ToolOutcome":
        return cls(
            kind="error",
            message=message or f"❌ **Error**\n\n{error}",
            error=error,
            code=code,
        )

    @property
    def is_error(self) -> bool:
        return self.kind == "error"

    def to_model_payload(self) -> dict[str, Any]:
        """Shape shown to the model as the tool result."""
        if self.kind == "error":
            return {"success": False, "error": self.error, "message": self.message}
        return {"success": True, "message": self.message, "data": self.data}


def classify_tool_error(error_message: str) -> str:
    """Render a backend error as a user-facing message.

    Args:
        error_message: Raw error text.

    Returns:
        Markdown message with guidance for common failure classes.
    """
    friendly = error_message
    if "COMPOSIO_API_KEY" in error_message:
        friendly = (
            "Composio API key is not configured. Please set the "
            "COMPOSIO_API_KEY environment variable to enable integrations."
        )
    elif "Tool" in error_message and "not found" in error_message:
        friendly = (
            f"{error_message}\n\nThis might indicate:\n"
            "• The integration is not properly connected\n"
            "• The tool name is incorrect\n"
            "• You need to authenticate with the service first"
        )
    elif "returned undefined" in error_message or "malformed" in error_message.lower():
        friendly = (
            f"{error_message}\n\nThis indicates a problem with the Composio "
            "integration setup. The tool exists but is malformed. Check your "
            "API key and integration configuration."
        )
    return f"❌ **Error**\n\n{friendly}"


# ---------------------------------------------------------------------------
# Bound Tool Contract
# ---------------------------------------------------------------------------


class BoundTool(Protocol):
    """A tool instantiated for one turn."""

    name: str
    description: str

    @property
    def input_schema(self) -> dict[str, Any]: ...

    async def execute(self, raw_input: Any) -> ToolOutcome: ...


class EmptyInput(BaseModel):
    """Input model for tools that take no arguments."""

    model_config = ConfigDict(extra="ignore")


def _format_validation_error(tool_name: str, exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ())) or "input"
        problems.append(f"{location}: {err.get('msg', 'invalid')}")
    return f"Invalid input for {tool_name}: " + "; ".join(problems)


class _AdapterBase:
    """Validation and user resolution shared by both adapters."""

    def __init__(
        self,
        *,
        name: str,
        description: str,
        input_model: type[BaseModel],
        integration_name: str,
        context: ToolContext,
    ) -> None:
        self.name = name
        self.description = description
        self.input_model = input_model
        self.integration_name = integration_name
        self.context = context

    @property
    def input_schema(self) -> dict[str, Any]:
        schema = self.input_model.model_json_schema()
        schema.pop("title", None)
        schema.setdefault("properties", {})
        return schema

    def definition(self) -> dict[str, Any]:
        """Tool definition in Anthropic tools format."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }

    def _prepare(self, raw_input: Any) -> tuple[BaseModel | None, str | None, ToolOutcome | None]:
        try:
            params = self.input_model.model_validate(raw_input or {})
        except ValidationError as e:
            message = _format_validation_error(self.name, e)
            return None, None, ToolOutcome.failure("validation_error", message)

        user_id = self.context.user_id
        if not user_id:
            return None, None, ToolOutcome.failure(
                "unauthenticated", "User not authenticated"
            )
        return params, user_id, None


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------


SuccessMessage = str | Callable[[BaseModel, Any], str]


class ComposioTool(_AdapterBase):
    """Adapter that runs one Composio action for the current user.

    Args:
        name: Tool name offered to the model.
        description: Tool description offered to the model.
        input_model: Pydantic model validating the model-supplied input.
        integration_name: Catalog integration the action belongs to.
        action: Composio action slug.
        context: Turn context.
        success_message: Message on success, or a callable
            (params, data) -> message.
        build_arguments: Optional mapping from validated params to Composio
            arguments. Defaults to the params without unset fields.
    """

    def __init__(
        self,
        *,
        name: str,
        description: str,
        input_model: type[BaseModel],
        integration_name: str,
        action: str,
        context: ToolContext,
        success_message: SuccessMessage = "Action completed successfully",
        build_arguments: Callable[[BaseModel], dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(
            name=name,
            description=description,
            input_model=input_model,
            integration_name=integration_name,
            context=context,
        )
        self.action = action
        self._success_message = success_message
        self._build_arguments = build_arguments

    def _arguments(self, params: BaseModel) -> dict[str, Any]:
        if self._build_arguments is not None:
            return self._build_arguments(params)
        return params.model_dump(exclude_none=True)

    async def execute(self, raw_input: Any) -> ToolOutcome:
        """Validate, call Composio, and normalize the result.

        Never raises.
        """
        params, user_id, rejected = self._prepare(raw_input)
        if rejected is not None:
            return rejected

        try:
            result = await self.context.composio.execute_tool(
                self.action, user_id, self._arguments(params)
            )
        except Exception as e:
            error_message = str(e) or type(e).__name__
            logger.error(
                "Tool %s (%s) failed: %s",
                self.name,
                self.action,
                sanitize_error_message(error_message),
            )
            return ToolOutcome.failure(
                "tool_error", error_message, classify_tool_error(error_message)
            )

        if not result.successful:
            error_message = result.error or f"{self.action} was not successful"
            return ToolOutcome.failure(
                "tool_error", error_message, classify_tool_error(error_message)
            )

        if callable(self._success_message):
            message = self._success_message(params, result.data)
        else:
            message = self._success_message
        return ToolOutcome.ok(message, result.data)


class AuthenticateTool(_AdapterBase):
    """Adapter that starts the OAuth flow for an integration.

    Returns an auth_required outcome carrying the redirect URL so the
    client can render a connect button.
    """

    def __init__(self, *, integration_name: str, context: ToolContext, name: str) -> None:
        super().__init__(
            name=name,
            description=(
                f"Initiate authentication with {integration_name} to enable "
                f"{integration_name} functionality"
            ),
            input_model=EmptyInput,
            integration_name=integration_name,
            context=context,
        )

    async def execute(self, raw_input: Any) -> ToolOutcome:
        """Start (or reuse) the integration's auth request. Never raises."""
        _, user_id, rejected = self._prepare(raw_input)
        if rejected is not None:
            return rejected

        try:
            info = await self.context.auth_manager.initiate_auth(
                user_id, self.integration_name
            )
        except Exception as e:
            logger.error(
                "Error initiating auth for %s: %s",
                self.integration_name,
                sanitize_error_message(str(e)),
            )
            return ToolOutcome.failure(
                "auth_initiation_failed",
                str(e) or type(e).__name__,
                (
                    "❌ **Authentication Failed**\n\nFailed to initiate "
                    f"{self.integration_name} authentication. Please try again "
                    "or contact support."
                ),
            )

        return ToolOutcome.auth_required(
            info.redirect_url, self.integration_name, self.name
        )


def authenticate_tool_name(integration_name: str) -> str:
    """Tool name for an integration's auth tool, e.g. 'authenticateGoogleDrive'."""
    cleaned = "".join(ch for ch in integration_name if ch.isalnum() or ch == " ")
    words = cleaned.split()
    # 'X (Twitter)' authenticates as 'authenticateTwitter'
    if len(words) > 1 and len(words[0]) == 1:
        words = words[1:]
    return "authenticate" + "".join(w[:1].upper() + w[1:] for w in words)


# ---------------------------------------------------------------------------
# Registration Helpers
# ---------------------------------------------------------------------------

AUTH_ACTION = "AUTHENTICATE"


@dataclass(frozen=True)
class ActionSpec:
    """Declarative description of one Composio-backed tool."""

    name: str
    description: str
    input_model: type[BaseModel]
    action: str
    success_message: SuccessMessage = "Action completed successfully"
    build_arguments: Callable[[BaseModel], dict[str, Any]] | None = None


def composio_tool_factory(spec: ActionSpec, integration_name: str) -> Callable[[ToolContext], ComposioTool]:
    """Factory that binds an ActionSpec to a turn context."""

    def _factory(context: ToolContext) -> ComposioTool:
        return ComposioTool(
            name=spec.name,
            description=spec.description,
            input_model=spec.input_model,
            integration_name=integration_name,
            action=spec.action,
            context=context,
            success_message=spec.success_message,
            build_arguments=spec.build_arguments,
        )

    return _factory


def authenticate_tool_factory(integration_name: str) -> Callable[[ToolContext], AuthenticateTool]:
    """Factory for an integration's auth tool."""
    tool_name = authenticate_tool_name(integration_name)

    def _factory(context: ToolContext) -> AuthenticateTool:
        return AuthenticateTool(
            integration_name=integration_name, context=context, name=tool_name
        )

    return _factory


def register_integration(
    registry: Any,
    integration_name: str,
    actions: list[ActionSpec],
    with_auth: bool = True,
) -> None:
    """Register an integration's action tools and, optionally, its auth tool.

    Args:
        registry: ToolRegistry to populate.
        integration_name: Catalog integration name.
        actions: Action specs for the integration.
        with_auth: Whether to register ``authenticate<Integration>``.
    """
    for spec in actions:
        registry.register(
            spec.name,
            composio_tool_factory(spec, integration_name),
            integration_name,
            spec.action,
        )
    if with_auth:
        registry.register(
            authenticate_tool_name(integration_name),
            authenticate_tool_factory(integration_name),
            integration_name,
            AUTH_ACTION,
        )
