#!/usr/bin/env python3

"""
    atomic_file.py
    Write-to-temp-then-rename helper used for dataset downloads and the
    visited-places store.

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

import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

# -----------------------------------------------------------------------------


@contextmanager
def atomic_writer(dest_path: Path, mode: str = "wb",
                  encoding: str | None = None) -> Iterator:
    """
    Yield a file object writing to a temp file next to dest_path.

    On normal exit the temp file is flushed, fsync'ed and renamed over
    dest_path. If the body raises, the temp file is removed and dest_path
    is left exactly as it was.
    """
    dest_path = Path(dest_path)
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{dest_path.name}.", suffix=".tmp", dir=dest_path.parent
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, mode, encoding=encoding) as f:
            yield f
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, dest_path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
# atomic_writer


# -----------------------------------------------------------------------------


def write_text_atomic(dest_path: Path, content: str) -> None:
    with atomic_writer(dest_path, "w", encoding="utf-8") as f:
        f.write(content)
# write_text_atomic
