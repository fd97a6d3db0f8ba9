# =============================================================================
# notilisten -- Package Logger
# =============================================================================

import logging

logger = logging.getLogger("notilisten")
