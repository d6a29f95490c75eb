"""
Human-readable unique numbers (order numbers, customer numbers, inquiry ids).
"""
import secrets

from django.utils import timezone

MAX_ATTEMPTS = 10


def generate_unique_number(model, field: str, prefix: str, random_digits: int = 2) -> str:
    """
    Build ``<prefix><yymmddHHMM><random digits>`` and retry until unused.

    Falls back to a millisecond timestamp when every attempt collides.
    """
    now = timezone.localtime()
    stamp = now.strftime('%y%m%d%H%M')
    for _ in range(MAX_ATTEMPTS):
        suffix = str(secrets.randbelow(10 ** random_digits)).zfill(random_digits)
        candidate = f"{prefix}{stamp}{suffix}"
        if not model.objects.filter(**{field: candidate}).exists():
            return candidate
    return f"{prefix}{int(now.timestamp() * 1000)}"
