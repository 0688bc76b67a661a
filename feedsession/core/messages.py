"""User-facing message strings"""

WIPE_ALL = "Wipe All User Data"

LOADING_ERROR_MSG = "Currently loading, please wait a moment and try again."

ACCESS_TOKEN_REVOKED_MSG = "Your access token was revoked. Please log in again to continue using the app."

VERIFY_CREDENTIALS_FAILED_MSG = "Failed to verify credentials, logging out"

OAUTH_ERROR_MSG = (
    "You may have used this app before it requested appropriate permissions."
    f' This can be fixed with the "{WIPE_ALL}" option or by logging out and authorizing the app again.'
)

NETWORK_ERROR_NOTE = "Could not reach your server. This is probably temporary, try again in a moment."

LOAD_FAILED_MSG = "Failed to load feed"
