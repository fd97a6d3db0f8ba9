# =============================================================================
# notilisten -- Default Values
# =============================================================================

# -- Reconnection backoff (seconds) -------------------------------------------

BACKOFF_BASE_DELAY = 1.0
BACKOFF_MAX_DELAY = 60.0
BACKOFF_FACTOR = 2.0
BACKOFF_JITTER_RATIO = 0.1  # +/- 10% of the computed delay
BACKOFF_FIB_LIMIT = 16  # fibonacci growth stops here; max_delay caps anyway

# -- Session ------------------------------------------------------------------

SESSION_CLOSE_TIMEOUT = 5.0

# -- WebSocket transport -------------------------------------------------------

WS_CONNECTION_TIMEOUT = 10.0
WS_MAX_MESSAGE_SIZE = 1_048_576  # 1 MB
WS_PROTOCOL_VERSION = 1
WS_CLOSE_NORMAL = 1000

# Frame prefixes that precede the JSON body of a text frame
WS_PREFIXES = ("WSE", "S", "U")
