import logging
import os
from dataclasses import dataclass, replace

from rich.logging import RichHandler

_DEFAULT_RUNTIME_MODULE = "wiregen.runtime"


@dataclass(frozen=True)
class Settings:
    workers: int = 4
    runtime_module: str = _DEFAULT_RUNTIME_MODULE
    log_level: str = "WARNING"

    def override(self, **changes: object) -> "Settings":
        """Return a copy with every non-None change applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def get_settings() -> Settings:
    workers = os.getenv("WIREGEN_WORKERS", "4")
    try:
        worker_count = max(1, int(workers))
    except ValueError:
        raise ValueError(f"WIREGEN_WORKERS must be an integer, got {workers!r}") from None
    return Settings(
        workers=worker_count,
        runtime_module=os.getenv("WIREGEN_RUNTIME_MODULE", _DEFAULT_RUNTIME_MODULE),
        log_level=os.getenv("WIREGEN_LOG_LEVEL", "WARNING").upper(),
    )


def configure_logging(settings: Settings, verbose: bool = False) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(name)s: %(message)s",
            handlers=[RichHandler(show_path=False)],
            force=True,
        )
        return
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        force=True,
    )
