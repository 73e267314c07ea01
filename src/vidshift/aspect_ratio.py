"""Aspect-ratio crop filters.

Crops are centred and take the largest rectangle of the target ratio that
fits the source frame. The expression is written in terms of ``iw``/``ih``
because source dimensions are unknown when the command is compiled.
"""

ASPECT_RATIOS: dict[str, float] = {
    "16:9": 16 / 9,
    "9:16": 9 / 16,
    "4:3": 4 / 3,
    "1:1": 1.0,
    "4:5": 4 / 5,
    "1.91:1": 1.91,
    "21:9": 21 / 9,
}

# Fixed precision keeps the argument list byte-identical across platforms.
RATIO_PRECISION = 4


def resolve_aspect_ratio(name: str | None) -> float | None:
    """Return the width/height ratio for a named aspect ratio.

    Args:
        name: Ratio name such as ``"16:9"``.

    Returns:
        The numeric ratio, or None when the name is absent or unknown.
    """
    if not name:
        return None
    return ASPECT_RATIOS.get(name.strip())


def format_ratio(ratio: float) -> str:
    return f"{ratio:.{RATIO_PRECISION}f}"


def crop_filter(ratio: float) -> str:
    """Build a centred crop filter for ``ratio``.

    A source wider than ``ratio`` keeps its height and is cropped to
    ``ih*ratio`` wide; a taller source keeps its width and is cropped to
    ``iw/ratio`` high. The commas inside ``min()`` are escaped so the
    expression survives being joined into a comma-separated filter chain.

    Example for 1:1::

        crop=min(iw\\,ih*1.0000):min(ih\\,iw/1.0000)
    """
    r = format_ratio(ratio)
    return f"crop=min(iw\\,ih*{r}):min(ih\\,iw/{r})"


def aspect_ratio_crop_filter(name: str | None) -> str | None:
    """Return the crop filter for a named ratio, or None for no crop."""
    ratio = resolve_aspect_ratio(name)
    if ratio is None:
        return None
    return crop_filter(ratio)
