"""Crash-safe writes for the dynamic-rules state file.

The new content is encoded first, written to a hidden sibling temp file,
fsynced and renamed over the target. A reader of ``dynamic_rules.json`` sees
either the old rule set or the new one; a failure leaves the old file and no
temp file behind.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

PathLike = str | os.PathLike[str]


def atomic_write(
    path: PathLike,
    data: bytes | str,
    *,
    encoding: str = "utf-8",
    create_parents: bool = False,
) -> None:
    target = Path(path)
    payload = data if isinstance(data, bytes) else data.encode(encoding)
    if create_parents:
        target.parent.mkdir(parents=True, exist_ok=True)
    directory = target.parent.resolve(strict=True)

    with tempfile.NamedTemporaryFile(
        "wb", dir=directory, prefix=f".{target.name}.", suffix=".tmp", delete=False
    ) as staged:
        staged_path = Path(staged.name)
        try:
            staged.write(payload)
            staged.flush()
            os.fsync(staged.fileno())
        except BaseException:
            staged.close()
            staged_path.unlink(missing_ok=True)
            raise
    try:
        os.replace(staged_path, target)
    except BaseException:
        staged_path.unlink(missing_ok=True)
        raise
    _sync_directory(directory)


def atomic_write_json(path: PathLike, payload: object, *, create_parents: bool = True) -> None:
    """Write ``payload`` as two-space indented, key-sorted JSON ending in a newline."""

    text = json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False)
    atomic_write(path, text + "\n", create_parents=create_parents)


def _sync_directory(directory: Path) -> None:
    # Makes the rename durable; not every platform can open a directory.
    if not hasattr(os, "O_DIRECTORY"):
        return
    try:
        handle = os.open(directory, os.O_RDONLY | os.O_DIRECTORY)
    except OSError:
        return
    try:
        os.fsync(handle)
    except OSError:
        pass
    finally:
        os.close(handle)


__all__ = ["PathLike", "atomic_write", "atomic_write_json"]
