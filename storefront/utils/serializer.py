from datetime import datetime
from storefront.utils.promo_helpers import as_utc

def format_date(value: datetime) -> str:
    """
    Calendar date used in human-readable messages
    """
    return as_utc(value).strftime("%Y-%m-%d")
