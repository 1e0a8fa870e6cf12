"""
Response envelopes shared by every gateway endpoint.

Success:  {"success": true, "data": ..., "message": ...}
Failure:  {"success": false, "error": {"message": ..., "code": ..., "details": ...}}

Example:
    @router.post("/logout-all")
    async def logout_all(...):
        revoked = await auth_service.logout_all(user_id)
        return success_response({"revokedCount": revoked}, message="Logged out of all sessions")
"""

from typing import Any, Optional, Dict


def success_response(
    data: Any = None,
    message: Optional[str] = None,
) -> Dict[str, Any]:
    """Wrap ``data`` in the success envelope; ``data`` and ``message`` are omitted when empty."""
    response: Dict[str, Any] = {"success": True}

    if data is not None:
        response["data"] = data

    if message:
        response["message"] = message

    return response


def error_response(
    message: str,
    code: Optional[str] = None,
    details: Optional[Any] = None,
) -> Dict[str, Any]:
    """
    Build the failure envelope.

    Args:
        message: Client-safe description, e.g. "Invalid email or password"
        code: Stable machine-readable code, e.g. "TOKEN_EXPIRED"
        details: Extra context such as the list of failed validation rules
    """
    error: Dict[str, Any] = {"message": message}

    if code:
        error["code"] = code

    if details is not None:
        error["details"] = details

    return {"success": False, "error": error}
