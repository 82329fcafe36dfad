from __future__ import annotations

from typing import Iterable, List, Optional


def is_non_empty(text: Optional[str]) -> bool:
    return bool((text or "").strip())


def clean_text(text: Optional[str]) -> Optional[str]:
    """Recorta espacios; cadena vacía -> None."""
    s = (text or "").strip()
    return s or None


def normalize_curve(values: Iterable[str]) -> List[str]:
    """Curva de talles: recorta, descarta vacíos y repetidos, conserva el orden.

    Ejemplos:
    - [" S", "M ", "", "M"] -> ["S", "M"]
    """
    out: List[str] = []
    for v in values:
        s = (v or "").strip()
        if s and s not in out:
            out.append(s)
    return out


def is_non_negative_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0
