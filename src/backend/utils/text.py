from __future__ import annotations

import re
import unicodedata

__all__ = ("slugify",)


def slugify(value: str, *, separator: str = "-") -> str:
    """Generate an ASCII slug from the given string.

    Parameters
    ----------
    value : str
        The input string to slugify.
    separator : str, optional
        The separator placed between words (the default is ``"-"``).

    Returns
    -------
    str
        A lowercase slug containing only ASCII word characters and ``separator``.
    """
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^\w\s-]", "", value.lower())
    return re.sub(r"[-\s_]+", separator, value).strip(f"{separator}-_")
