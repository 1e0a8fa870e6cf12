"""
Input rules for account data.

Each check returns the list of violated rules so callers can aggregate them
into a single ValidationError.
"""

import re
from typing import Any, Dict, List

from common.auth.errors import ValidationError

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{3,30}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
EMAIL_MAX_LENGTH = 255

ROLES = ("user", "admin", "moderator")
THEMES = ("light", "dark", "auto")
LANGUAGES = ("es", "en", "fr", "de", "pt")

DEFAULT_PREFERENCES = {
    "theme": "auto",
    "language": "es",
    "notifications": True,
}

PROFILE_FIELDS = ("username", "email", "avatar", "preferences")
PREFERENCE_FIELDS = ("theme", "language", "notifications")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_username(username: Any) -> List[str]:
    if not isinstance(username, str) or not username:
        return ["Username is required"]
    if not USERNAME_PATTERN.match(username):
        return ["Username must be 3-30 characters: letters, digits, underscore or hyphen"]
    return []


def validate_email(email: Any) -> List[str]:
    if not isinstance(email, str) or not email.strip():
        return ["Email is required"]

    errors = []
    if len(email) > EMAIL_MAX_LENGTH:
        errors.append(f"Email must be at most {EMAIL_MAX_LENGTH} characters")
    if not EMAIL_PATTERN.match(email.strip()):
        errors.append("Email format is invalid")
    return errors


def validate_preferences(preferences: Any) -> List[str]:
    if not isinstance(preferences, dict):
        return ["Preferences must be an object"]

    errors = []

    unknown = sorted(set(preferences) - set(PREFERENCE_FIELDS))
    if unknown:
        errors.append(f"Unknown preference fields: {', '.join(unknown)}")

    if "theme" in preferences and preferences["theme"] not in THEMES:
        errors.append(f"Theme must be one of: {', '.join(THEMES)}")

    if "language" in preferences and preferences["language"] not in LANGUAGES:
        errors.append(f"Language must be one of: {', '.join(LANGUAGES)}")

    if "notifications" in preferences and not isinstance(preferences["notifications"], bool):
        errors.append("Notifications must be true or false")

    return errors


def validate_profile_updates(updates: Any) -> Dict[str, Any]:
    """
    Check a profile update and return it with the email normalized.

    Raises:
        ValidationError: with every violated rule in details.errors
    """
    if not isinstance(updates, dict) or not updates:
        raise ValidationError("No profile fields to update", code="EMPTY_UPDATE")

    errors: List[str] = []

    unknown = sorted(set(updates) - set(PROFILE_FIELDS))
    if unknown:
        errors.append(f"Fields cannot be updated: {', '.join(unknown)}")

    if "username" in updates:
        errors.extend(validate_username(updates["username"]))

    if "email" in updates:
        errors.extend(validate_email(updates["email"]))

    if "avatar" in updates and updates["avatar"] is not None and not isinstance(updates["avatar"], str):
        errors.append("Avatar must be a string")

    if "preferences" in updates:
        errors.extend(validate_preferences(updates["preferences"]))

    if errors:
        raise ValidationError("Invalid profile update", details={"errors": errors})

    cleaned = dict(updates)
    if "email" in cleaned:
        cleaned["email"] = normalize_email(cleaned["email"])
    return cleaned
