from typing import Any, Dict, Optional

from .registry import ToolContext, ToolDescriptor


def _pick(arguments: Dict[str, Any], *names: str) -> Optional[Any]:
    for name in names:
        value = arguments.get(name)
        if value is not None:
            return value
    return None


async def authenticate(ctx: ToolContext, arguments: Dict[str, Any]) -> Dict[str, Any]:
    """
    Verify GoHighLevel credentials and bind them to the caller's session.
    Also accepts the camelCase names apiKey, accountId and locationId.
    """
    result = await ctx.sessions.authenticate(
        ctx.session_id,
        _pick(arguments, "api_key", "apiKey"),
        _pick(arguments, "account_id", "accountId", "locationId", "location_id"),
    )
    return result.model_dump(by_alias=True)


AUTH_TOOLS = (
    ToolDescriptor(
        name="authenticate",
        description=(
            "Authenticate with GoHighLevel credentials. "
            "Must be called before using any other tools."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "api_key": {
                    "type": "string",
                    "description": "Your GoHighLevel private integration key (starts with 'pit-')",
                },
                "account_id": {
                    "type": "string",
                    "description": "Your GoHighLevel location ID",
                },
            },
            "required": ["api_key", "account_id"],
        },
        handler=authenticate,
        requires_auth=False,
    ),
)


__all__ = ["AUTH_TOOLS", "authenticate"]
