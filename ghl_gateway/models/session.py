from pydantic import BaseModel, Field


class Credentials(BaseModel):
    """
    Upstream credentials verified against the GoHighLevel API.
    """

    api_key: str = Field(..., description="GoHighLevel private integration key")
    account_id: str = Field(..., description="GoHighLevel location id")


class Session(BaseModel):
    """
    One caller's authenticated relationship with the CRM.
    """

    session_id: str = Field(..., description="Thread / conversation / session id")
    credentials: Credentials
    created_at: float = Field(..., description="Creation timestamp (epoch seconds)")
    last_used: float = Field(..., description="Last access timestamp (epoch seconds)")


class AuthResult(BaseModel):
    success: bool = True
    message: str
    session_id: str = Field(..., serialization_alias="sessionId")
    expires_in: str = Field(..., serialization_alias="expiresIn")


__all__ = ["AuthResult", "Credentials", "Session"]
