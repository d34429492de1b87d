"""
Domain constants used across services/routers.
"""

# Locale used when the request names none we support
DEFAULT_LOCALE = "en"

# Admin order listing page size bounds
ORDERS_PER_PAGE_DEFAULT = 20
ORDERS_PER_PAGE_MAX = 200

# Upper bound on ids accepted by one bulk status update
BULK_STATUS_MAX_IDS = 500
