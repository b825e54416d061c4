"""Cache addressing for analysis requests."""

from __future__ import annotations

import hashlib

from macro_analysis.domain.analysis.models import FoodInput


def compute_fingerprint(food_input: FoodInput) -> str:
    """
    Stable hash identifying a normalized request.

    Combines input kind, normalized text, image digest and context, so
    "2 Eggs  and toast" and "2 eggs and toast" share a cache entry while
    the same text logged from another context does not.

    Example:
        >>> a = compute_fingerprint(FoodInput(raw_text="2 Eggs  and toast"))
        >>> b = compute_fingerprint(FoodInput(raw_text="2 eggs and toast"))
        >>> assert a == b
    """
    parts = (
        str(food_input.input_kind),
        food_input.normalized_text,
        food_input.image_digest or "",
        str(food_input.context),
    )
    return hashlib.sha256("\x1f".join(parts).encode("utf-8")).hexdigest()
