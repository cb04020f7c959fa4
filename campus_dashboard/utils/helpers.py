import os
import random
import string
import sys
import time
from pathlib import Path

_BASE36 = string.digits + string.ascii_lowercase


def get_script_folder() -> Path:
    """Folder of the running entry script (or the frozen executable)."""
    if getattr(sys, "frozen", False):
        try:
            exe_path = Path(sys.argv[0]).resolve()
            if exe_path.exists():
                return exe_path.parent
        except Exception:
            return Path(sys.executable).parent

    main_file = getattr(sys.modules.get("__main__"), "__file__", None)
    if main_file:
        return Path(main_file).resolve().parent
    return Path.cwd()


def get_data_app_dir(folder_name: str = "data_app", create: bool = True) -> Path:
    """Return the directory used to store app data.

    Override:
        Set env var CAMPUS_DASHBOARD_DATA_DIR to force a specific root directory
        (tests and portable deployments use this).
    """

    override_root = str(os.environ.get("CAMPUS_DASHBOARD_DATA_DIR", "") or "").strip()
    if override_root:
        data_dir = Path(override_root) / folder_name
    elif getattr(sys, "frozen", False):
        data_dir = get_script_folder() / folder_name
    else:
        data_dir = Path.home() / ".campus_dashboard" / folder_name

    if create:
        data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def data_app_path(*parts: str, folder_name: str = "data_app") -> Path:
    """Convenience helper: build a path inside the data directory."""
    return get_data_app_dir(folder_name=folder_name, create=True).joinpath(*parts)


def random_base36(length: int = 9) -> str:
    return "".join(random.choice(_BASE36) for _ in range(length))


def timestamped_id(prefix: str) -> str:
    """`<prefix>-<epoch ms>-<random base36>`; sortable by creation time."""
    return f"{prefix}-{int(time.time() * 1000)}-{random_base36()}"
