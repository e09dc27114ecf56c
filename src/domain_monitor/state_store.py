"""
State Store module for per-domain notification state.

Each monitored domain has its own JSON file in the state directory, named by
replacing "." with "_" in the domain and appending ".json". Reads and writes
never raise: a missing or damaged file reads as a fresh state, a failed write
is logged. Only preparing the directory itself can fail hard.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Iterable, Optional

from .enums import LogLevel
from .exceptions import PersistenceError
from .logger import StructuredLogger
from .models import DomainState


STATE_FILE_SUFFIX = ".json"
STATE_FILE_MODE = 0o644


def state_key(domain: str) -> str:
    """File stem used for a domain's state file."""
    return domain.strip().replace(".", "_")


class StateStore:
    """
    Directory of per-domain state files.

    Writes go to a temporary file in the same directory which then replaces
    the target, so a crash mid-write leaves the previous state intact.
    """

    COMPONENT = "StateStore"

    def __init__(self, state_dir: Path, logger: Optional[StructuredLogger] = None) -> None:
        """
        Initialize the state store.

        Args:
            state_dir: Directory holding the state files
            logger: Optional structured logger
        """
        self._state_dir = Path(state_dir)
        self._logger = logger

    @property
    def state_dir(self) -> Path:
        return self._state_dir

    def ensure_directory(self) -> None:
        """
        Create the state directory and its parents.

        Raises:
            PersistenceError: If the directory cannot be created
        """
        try:
            self._state_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to create state directory: {e}",
                details={"state_dir": str(self._state_dir)},
            ) from e

    def state_file_path(self, domain: str) -> Path:
        return self._state_dir / f"{state_key(domain)}{STATE_FILE_SUFFIX}"

    def load(self, domain: str) -> DomainState:
        """
        Load a domain's state.

        Returns a zero-valued DomainState when the file is missing,
        unreadable or malformed.
        """
        path = self.state_file_path(domain)
        if not path.exists():
            return DomainState()

        try:
            with open(path, "r", encoding="utf-8") as f:
                raw_data = json.load(f)
            return DomainState.from_dict(raw_data)
        except (OSError, ValueError) as e:
            # json.JSONDecodeError and UnicodeDecodeError are ValueErrors
            self._warn(f"Could not read state for {domain}, starting fresh", path, e)
            return DomainState()

    def save(self, domain: str, state: DomainState) -> bool:
        """
        Write a domain's state.

        Returns:
            True on success, False if the write failed (the failure is logged)
        """
        path = self.state_file_path(domain)
        tmp_path: Optional[str] = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                delete=False,
                dir=str(self._state_dir),
                prefix=f".{path.stem}.",
                suffix=".tmp",
                encoding="utf-8",
            ) as f:
                tmp_path = f.name
                json.dump(state.to_dict(), f, indent=2)
            os.chmod(tmp_path, STATE_FILE_MODE)
            os.replace(tmp_path, path)
            tmp_path = None
            return True
        except OSError as e:
            self._warn(f"Could not write state for {domain}", path, e)
            return False
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass

    def is_app_generated_file(self, path: Path) -> bool:
        """
        Check whether a file holds a state record written by this tool.

        Only a JSON object with exactly the keys ``expiration`` (RFC 3339
        string), ``notified_expiry`` and ``notified_available`` (booleans)
        qualifies.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                DomainState.from_dict(json.load(f))
        except (OSError, ValueError):
            return False
        return True

    def cleanup(self, current_domains: Iterable[str]) -> list[Path]:
        """
        Delete state files of domains that are no longer monitored.

        A file is removed only if its stem matches no current domain and its
        content is a well-formed state record. Anything else in the directory
        is left alone.

        Returns:
            Paths that were deleted
        """
        keep = {state_key(d) for d in current_domains if d.strip()}
        removed: list[Path] = []

        if not self._state_dir.is_dir():
            if self._logger:
                self._logger.warning(
                    self.COMPONENT,
                    "State directory missing, nothing to clean up",
                    {"state_dir": str(self._state_dir)},
                )
            return removed

        try:
            candidates = sorted(self._state_dir.glob(f"*{STATE_FILE_SUFFIX}"))
        except OSError as e:
            self._warn("Could not scan state directory", self._state_dir, e)
            return removed

        for path in candidates:
            if path.stem in keep or not path.is_file():
                continue
            if not self.is_app_generated_file(path):
                if self._logger:
                    self._logger.debug(
                        self.COMPONENT,
                        "Leaving foreign file in state directory",
                        {"file_path": str(path)},
                    )
                continue
            try:
                path.unlink()
            except OSError as e:
                self._warn("Could not delete stale state file", path, e)
                continue
            removed.append(path)
            if self._logger:
                self._logger.info(
                    self.COMPONENT,
                    f"Removed stale state file {path.name}",
                    {"file_path": str(path)},
                )

        return removed

    def _warn(self, message: str, path: Path, error: Exception) -> None:
        if self._logger:
            self._logger.log_error(
                self.COMPONENT,
                message,
                error=error,
                additional_data={"file_path": str(path)},
                level=LogLevel.WARN,
            )
