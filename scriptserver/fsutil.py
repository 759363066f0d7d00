from __future__ import annotations

import os
from pathlib import Path
from typing import Optional


def atomic_write_text(path: Path, text: str, mode: Optional[int] = None) -> None:
    """Write `text` next to `path` and rename it into place.

    Readers see either the old file or the new one, never a partial write.
    """
    path = Path(path)
    tmp = path.with_name(path.name + '.tmp')
    try:
        with open(tmp, 'w', encoding='utf-8') as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        if mode is not None:
            os.chmod(tmp, mode)
        os.replace(tmp, path)
    except OSError:
        if tmp.is_file():
            tmp.unlink()
        raise
