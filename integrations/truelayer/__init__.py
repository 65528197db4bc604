"""TrueLayer open-banking integration package."""
from typing import Final, Mapping

HOSTS: Final[Mapping[str, str]] = {
    "sandbox": "truelayer-sandbox.com",
    "live": "truelayer.com",
}
DEFAULT_REDIRECT_URI: Final[str] = "https://console.truelayer.com/redirect-page"
OFFLINE_ACCESS: Final[str] = "offline_access"
