from typing import Callable
import os
import stat
from pathlib import Path
import shutil


_OWNER_RWX = stat.S_IRUSR | stat.S_IWUSR | stat.S_IXUSR


def _make_writable(func: Callable[[str], None], path: str, exc: BaseException) -> None:
    """onexc hook: open up the entry and its parent directory, then retry once."""
    for target in (os.path.dirname(path), path):
        try:
            os.chmod(target, _OWNER_RWX)
        except OSError:
            pass
    func(path)


def rmtree_force(path: Path) -> None:
    """Remove an extracted run directory.

    Archived trees keep their file modes, so a read-only directory inside
    ``before/`` or ``after/`` must be made writable before its entries can
    be unlinked. Missing paths are ignored.
    """
    path = Path(path)
    if not path.exists():
        return
    try:
        shutil.rmtree(path)
    except PermissionError:
        shutil.rmtree(path, onexc=_make_writable)
