"""Protocol constants shared by the ceremony, challenge and session modules."""

CHALLENGE_BYTES = 32
USER_HANDLE_BYTES = 32

CHALLENGE_TTL_SECONDS = 5 * 60
SWEEP_INTERVAL_SECONDS = 5 * 60
SESSION_TTL_SECONDS = 24 * 60 * 60

# Passed through to the platform authenticator, in milliseconds.
CEREMONY_TIMEOUT_MS = 60_000

# COSE algorithm identifiers: ES256 and RS256.
PUBLIC_KEY_ALGORITHMS = (-7, -257)
ALLOWED_TRANSPORTS = ("internal", "hybrid")

AUTH_METHOD = "biometric"
TOKEN_ISSUER = "decentralized-identity-system"
TOKEN_AUDIENCE = "user"

REGISTRATION = "registration"
AUTHENTICATION = "authentication"

MAX_PAGE_SIZE = 100
