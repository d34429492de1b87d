"""
Localized display labels for order statuses.

Presentation only: nothing in the lifecycle depends on these strings.
Each locale table must cover every OrderStatus member; a missing entry
fails at import time rather than rendering a blank label in production.
"""
from config import settings
from domain.constants import DEFAULT_LOCALE
from domain.enums import Locale, OrderStatus

UNKNOWN_KEY = "unknown"

STATUS_LABELS: dict[Locale, dict[str, str]] = {
    Locale.EN: {
        OrderStatus.PENDING.value: "Pending",
        OrderStatus.PROCESSING.value: "Processing",
        OrderStatus.SHIPPED.value: "Shipped",
        OrderStatus.DELIVERED.value: "Delivered",
        OrderStatus.CANCELLED.value: "Cancelled",
        UNKNOWN_KEY: "Unknown",
    },
    Locale.JA: {
        OrderStatus.PENDING.value: "保留中",
        OrderStatus.PROCESSING.value: "処理中",
        OrderStatus.SHIPPED.value: "発送済み",
        OrderStatus.DELIVERED.value: "配達済み",
        OrderStatus.CANCELLED.value: "キャンセル済み",
        UNKNOWN_KEY: "不明",
    },
    Locale.VI: {
        OrderStatus.PENDING.value: "Đang chờ xử lý",
        OrderStatus.PROCESSING.value: "Đang xử lý",
        OrderStatus.SHIPPED.value: "Đã gửi hàng",
        OrderStatus.DELIVERED.value: "Đã giao hàng",
        OrderStatus.CANCELLED.value: "Đã hủy",
        UNKNOWN_KEY: "Không xác định",
    },
}


def _check_exhaustive() -> None:
    missing_locales = [loc.value for loc in Locale if loc not in STATUS_LABELS]
    if missing_locales:
        raise RuntimeError(f"No status labels for locale(s): {', '.join(missing_locales)}")

    required = {s.value for s in OrderStatus} | {UNKNOWN_KEY}
    for locale, table in STATUS_LABELS.items():
        missing = sorted(key for key in required if not table.get(key))
        if missing:
            raise RuntimeError(
                f"Status labels for '{locale.value}' missing: {', '.join(missing)}"
            )


_check_exhaustive()


def _configured_default() -> Locale:
    try:
        return Locale(settings.default_locale.strip().lower())
    except ValueError:
        return Locale(DEFAULT_LOCALE)


def resolve_locale(value) -> Locale:
    """
    Map a locale-ish value onto a served Locale.

    A value is served when it has a label table and is listed in
    SUPPORTED_LOCALES; anything else gets the configured default locale.
    """
    if isinstance(value, str):
        candidate = value.value if isinstance(value, Locale) else value.strip().lower()
        if candidate in settings.supported_locales_list:
            try:
                return Locale(candidate)
            except ValueError:
                pass
    return _configured_default()


def status_label(status, locale=None) -> str:
    """Label for `status` in `locale`; unknown statuses get the locale's "unknown" label."""
    table = STATUS_LABELS[resolve_locale(locale)]
    key = status.value if isinstance(status, OrderStatus) else status
    if not isinstance(key, str) or key == UNKNOWN_KEY:
        return table[UNKNOWN_KEY]
    return table.get(key, table[UNKNOWN_KEY])
