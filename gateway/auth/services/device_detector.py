"""
Device detection from User-Agent strings.

Extracts coarse device type, OS and browser for session records. The result
is informational only and never used for authorization.
"""

import re
from typing import TypedDict

UNKNOWN = "unknown"


class DeviceInfo(TypedDict):
    """Device information extracted from User-Agent."""
    type: str
    os: str
    browser: str


class DeviceDetector:
    """
    Extracts device type and details from User-Agent header.
    """

    _OS_PATTERNS = [
        (r"iPhone|iPad|iPod", "iOS"),
        (r"Android", "Android"),
        (r"Windows NT", "Windows"),
        (r"Mac OS X", "macOS"),
        (r"CrOS", "Chrome OS"),
        (r"Linux", "Linux"),
    ]

    # Order matters: Edge and Opera also advertise Chrome, Chrome advertises Safari
    _BROWSER_PATTERNS = [
        (r"Edg/", "Edge"),
        (r"OPR/|Opera", "Opera"),
        (r"Chrome/", "Chrome"),
        (r"Firefox/", "Firefox"),
        (r"Safari/", "Safari"),
    ]

    _MOBILE_PATTERNS = [
        r"Android.*Mobile",
        r"iPhone",
        r"iPod",
        r"Mobile",
    ]

    _TABLET_PATTERNS = [
        r"iPad",
        r"Android(?!.*Mobile)",
        r"Tablet",
    ]

    def detect(self, user_agent: str) -> DeviceInfo:
        """
        Parse User-Agent and return device information.

        Args:
            user_agent: HTTP User-Agent header value

        Returns:
            dict with fields:
                - type: "mobile" | "tablet" | "desktop" | "unknown"
                - os: "iOS" | "Android" | "Windows" | "macOS" | "Linux" | ...
                - browser: "Chrome" | "Safari" | "Firefox" | "Edge" | ...
        """
        if not user_agent or user_agent == UNKNOWN:
            return DeviceInfo(type=UNKNOWN, os=UNKNOWN, browser=UNKNOWN)

        return DeviceInfo(
            type=self._detect_device_type(user_agent),
            os=self._match(self._OS_PATTERNS, user_agent),
            browser=self._match(self._BROWSER_PATTERNS, user_agent),
        )

    @staticmethod
    def _match(patterns, user_agent: str) -> str:
        for pattern, name in patterns:
            if re.search(pattern, user_agent, re.IGNORECASE):
                return name
        return UNKNOWN

    def _detect_device_type(self, user_agent: str) -> str:
        """Detect device type (mobile, tablet, desktop) from User-Agent."""
        for pattern in self._TABLET_PATTERNS:
            if re.search(pattern, user_agent, re.IGNORECASE):
                return "tablet"

        for pattern in self._MOBILE_PATTERNS:
            if re.search(pattern, user_agent, re.IGNORECASE):
                return "mobile"

        return "desktop"
