"""
CRM tools. Every tool here requires an authenticated session; handlers get
the resolved credentials through the ToolContext and open a short-lived
upstream client per call.
"""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from ghl_gateway.errors import ToolExecutionError
from ghl_gateway.upstream import UpstreamError

from .registry import ToolContext, ToolDescriptor, parse_arguments


class _Args(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class SearchContactsArgs(_Args):
    query: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    limit: int = Field(10, ge=1)

    @property
    def search_term(self) -> str:
        # phone, then email, then the free-text query
        return self.phone or self.email or self.query or ""

    @model_validator(mode="after")
    def _require_term(self) -> "SearchContactsArgs":
        if not self.search_term:
            raise ValueError("one of query, phone or email is required")
        return self


class CreateContactArgs(_Args):
    first_name: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("first_name", "firstName")
    )
    phone: str = Field(..., min_length=1)
    last_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("last_name", "lastName")
    )
    email: Optional[str] = None


class SendMessageArgs(_Args):
    message: str = Field(..., min_length=1)
    contact_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("contact_id", "contactId")
    )
    phone: Optional[str] = None
    type: Literal["SMS", "Email"] = "SMS"
    subject: Optional[str] = None

    @model_validator(mode="after")
    def _require_recipient(self) -> "SendMessageArgs":
        if not self.contact_id and not self.phone:
            raise ValueError("either contact_id or phone is required")
        return self


class CreateBlogPostArgs(_Args):
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    status: Literal["draft", "published"] = "draft"


class GetOpportunitiesArgs(_Args):
    limit: int = Field(20, ge=1)
    status: Literal["open", "won", "lost", "abandoned"] = "open"


def _failed(action: str, exc: UpstreamError) -> ToolExecutionError:
    return ToolExecutionError(f"Failed to {action}: {exc.message}", data=exc.to_data())


async def search_contacts(ctx: ToolContext, arguments: Dict[str, Any]) -> Dict[str, Any]:
    args = parse_arguments("search_contacts", SearchContactsArgs, arguments)
    try:
        async with ctx.client() as client:
            data = await client.search_contacts(args.search_term, args.limit)
    except UpstreamError as exc:
        raise _failed("search contacts", exc) from exc
    return {
        "success": True,
        "contacts": data.get("contacts") or [],
        "total": data.get("total") or 0,
    }


async def create_contact(ctx: ToolContext, arguments: Dict[str, Any]) -> Dict[str, Any]:
    args = parse_arguments("create_contact", CreateContactArgs, arguments)
    try:
        async with ctx.client() as client:
            data = await client.create_contact(
                first_name=args.first_name,
                phone=args.phone,
                last_name=args.last_name,
                email=args.email,
            )
    except UpstreamError as exc:
        raise _failed("create contact", exc) from exc
    contact = data.get("contact") or data
    full_name = " ".join(p for p in (args.first_name, args.last_name) if p)
    return {
        "success": True,
        "contactId": contact.get("id"),
        "message": f"Contact created successfully: {full_name}",
    }


async def send_message(ctx: ToolContext, arguments: Dict[str, Any]) -> Dict[str, Any]:
    args = parse_arguments("send_message", SendMessageArgs, arguments)
    try:
        async with ctx.client() as client:
            contact_id = args.contact_id
            if not contact_id:
                # No contact id: look the contact up by phone number.
                found = await client.search_contacts(args.phone or "", 1)
                contacts = found.get("contacts") or []
                if not contacts or not contacts[0].get("id"):
                    raise ToolExecutionError(
                        "No contact found. Please provide contact_id or the phone "
                        "number of an existing contact."
                    )
                contact_id = contacts[0]["id"]
            data = await client.send_message(
                contact_id=contact_id,
                message=args.message,
                message_type=args.type,
                subject=args.subject,
            )
    except UpstreamError as exc:
        raise _failed("send message", exc) from exc
    return {
        "success": True,
        "contactId": contact_id,
        "messageId": data.get("messageId"),
        "conversationId": data.get("conversationId"),
    }


async def create_blog_post(ctx: ToolContext, arguments: Dict[str, Any]) -> Dict[str, Any]:
    args = parse_arguments("create_blog_post", CreateBlogPostArgs, arguments)
    try:
        async with ctx.client() as client:
            data = await client.create_blog_post(
                title=args.title, content=args.content, status=args.status
            )
    except UpstreamError as exc:
        raise _failed("create blog post", exc) from exc
    return {"success": True, "blogId": data.get("id"), "url": data.get("url")}


async def get_opportunities(ctx: ToolContext, arguments: Dict[str, Any]) -> Dict[str, Any]:
    args = parse_arguments("get_opportunities", GetOpportunitiesArgs, arguments)
    try:
        async with ctx.client() as client:
            data = await client.search_opportunities(limit=args.limit, status=args.status)
    except UpstreamError as exc:
        raise _failed("get opportunities", exc) from exc
    return {
        "success": True,
        "opportunities": data.get("opportunities") or [],
        "total": data.get("total") or 0,
    }


CRM_TOOLS = (
    ToolDescriptor(
        name="search_contacts",
        description="Search for contacts by phone number, email, or name",
        input_schema={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Search query (email, phone, name, etc.)",
                },
                "phone": {"type": "string", "description": "Phone number to search"},
                "email": {"type": "string", "description": "Email to search"},
                "limit": {
                    "type": "integer",
                    "description": "Maximum number of results",
                    "default": 10,
                },
            },
        },
        handler=search_contacts,
    ),
    ToolDescriptor(
        name="create_contact",
        description="Create a new contact",
        input_schema={
            "type": "object",
            "properties": {
                "first_name": {"type": "string", "description": "First name"},
                "last_name": {"type": "string", "description": "Last name"},
                "email": {"type": "string", "description": "Email address"},
                "phone": {"type": "string", "description": "Phone number"},
            },
            "required": ["first_name", "phone"],
        },
        handler=create_contact,
    ),
    ToolDescriptor(
        name="send_message",
        description="Send SMS or email message to a contact",
        input_schema={
            "type": "object",
            "properties": {
                "contact_id": {
                    "type": "string",
                    "description": "ID of the contact to message",
                },
                "phone": {
                    "type": "string",
                    "description": "Phone number of an existing contact, used when contact_id is omitted",
                },
                "message": {"type": "string", "description": "Message content"},
                "type": {
                    "type": "string",
                    "enum": ["SMS", "Email"],
                    "description": "Message type",
                    "default": "SMS",
                },
                "subject": {
                    "type": "string",
                    "description": "Email subject (email type only)",
                },
            },
            "required": ["message"],
        },
        handler=send_message,
    ),
    ToolDescriptor(
        name="create_blog_post",
        description="Create a new blog post",
        input_schema={
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "Blog post title"},
                "content": {
                    "type": "string",
                    "description": "Blog post content (HTML)",
                },
                "status": {
                    "type": "string",
                    "enum": ["draft", "published"],
                    "description": "Publication status",
                    "default": "draft",
                },
            },
            "required": ["title", "content"],
        },
        handler=create_blog_post,
    ),
    ToolDescriptor(
        name="get_opportunities",
        description="Get opportunities from the sales pipeline",
        input_schema={
            "type": "object",
            "properties": {
                "limit": {
                    "type": "integer",
                    "description": "Maximum number of results",
                    "default": 20,
                },
                "status": {
                    "type": "string",
                    "enum": ["open", "won", "lost", "abandoned"],
                    "description": "Opportunity status",
                    "default": "open",
                },
            },
        },
        handler=get_opportunities,
    ),
)


__all__ = [
    "CRM_TOOLS",
    "create_blog_post",
    "create_contact",
    "get_opportunities",
    "search_contacts",
    "send_message",
]
