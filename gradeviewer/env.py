import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_DB_PATH = Path("data/gradeviewer.db")


def load_env(base_dir: Optional[Path] = None) -> None:
    """Load .env.local then .env from the working directory if present.

    Values in .env.local win; .env only fills what is still unset.
    """
    base = base_dir or Path.cwd()
    local_path = base / ".env.local"
    env_path = base / ".env"
    if local_path.exists():
        load_dotenv(dotenv_path=local_path, override=True)
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)


def database_path() -> Path:
    return Path(os.getenv("GRADEVIEWER_DB", str(DEFAULT_DB_PATH)))
