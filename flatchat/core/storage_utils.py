import json
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional, Union

PathLike = Union[str, Path]


def ensure_file(path: PathLike, initial: str = "", mode: Optional[int] = None,
                dir_mode: Optional[int] = None) -> bool:
    """
    Create `path` (and its parent directory) if it does not exist yet.
    Applies `mode` to the file whether or not it was just created.
    Returns True when the file was created.
    """
    path = Path(path)
    if not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        if dir_mode is not None:
            os.chmod(path.parent, dir_mode)

    created = False
    try:
        # "x" so two processes bootstrapping at once never clobber each other.
        with open(path, "x", encoding="utf-8") as f:
            f.write(initial)
        created = True
    except FileExistsError:
        pass

    if mode is not None:
        try:
            os.chmod(path, mode)
        except PermissionError:
            # File owned by another user; its mode is theirs to manage.
            pass
    return created


def atomic_write_text(path: PathLike, data: str, mode: Optional[int] = None) -> None:
    """
    Safely write text data to a file:
    - Write to a uniquely named temporary file in the same directory.
    - fsync it, apply `mode`.
    - Atomically replace the target file.

    Readers opening the target see either the old or the new content, never
    a partial write.
    """
    path = Path(path)
    directory = path.parent
    if not directory.exists():
        directory.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(directory))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        if mode is not None:
            os.chmod(tmp_path, mode)
        # Atomic replace on most OSes.
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def load_json(
    path: PathLike,
    default_factory: Optional[Callable[[], Any]] = None,
) -> Any:
    """
    Load JSON from path; on a missing, empty or corrupt file return default_factory() or {}.
    """
    if default_factory is None:
        default_factory = dict

    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except (FileNotFoundError, UnicodeDecodeError):
        return default_factory()

    if not content.strip():
        return default_factory()
    try:
        return json.loads(content)
    except (json.JSONDecodeError, RecursionError):
        return default_factory()
