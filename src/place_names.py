#!/usr/bin/env python3

"""
    place_names.py
    Normalization of place names into lookup keys.

    Copyright (C) 2026 Rodolfo González González <code@rodolfo.gg>

    This program is free software: you can redistribute it and/or modify
    it under the terms of the GNU General Public License as published by
    the Free Software Foundation, either version 3 of the License, or
    (at your option) any later version.

    This program is distributed in the hope that it will be useful,
    but WITHOUT ANY WARRANTY; without even the implied warranty of
    MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
    GNU General Public License for more details.

    You should have received a copy of the GNU General Public License
    along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

import re
import unicodedata

# Letters that NFD leaves alone but readers treat as a plain Latin letter
_FOLD = str.maketrans({
    "ø": "o", "đ": "d", "ð": "d", "ł": "l", "ħ": "h", "ı": "i",
    "æ": "ae", "œ": "oe", "þ": "th", "ŧ": "t",
})

# Dropped outright: "St. Louis" == "St Louis", "L'Aquila" == "LAquila"
_DROP = re.compile(r"['’ʼ`.]")
# Any other punctuation or symbol separates words: "Saint-Étienne" == "Saint Etienne"
_SEPARATOR = re.compile(r"[^\w\s]|_")
_SPACES = re.compile(r"\s+")

# -----------------------------------------------------------------------------


def _strip_accents(s: str | None) -> str | None:
    """Remove combining accent marks from a Unicode string."""
    if s is None:
        return None
    return "".join(
        c for c in unicodedata.normalize("NFD", s)
        if unicodedata.category(c) != "Mn"
    )
# _strip_accents


# -----------------------------------------------------------------------------


def normalize_name(name: str) -> str:
    """
    Lookup key for a place name: case-folded, accent-free, punctuation-free,
    single-spaced. "  São   Tomé " and "Sao-Tome" both become "sao tome".
    """
    key = _strip_accents(unicodedata.normalize("NFKC", name).casefold())
    key = key.translate(_FOLD)
    key = _DROP.sub("", key)
    key = _SEPARATOR.sub(" ", key)
    return _SPACES.sub(" ", key).strip()
# normalize_name
