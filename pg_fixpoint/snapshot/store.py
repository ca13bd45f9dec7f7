"""
Fixpoint store - reads and writes fixpoint files.

One JSON file per fixpoint, named after the fixpoint:

    {base_dir}/
    ├── base.json
    └── after_signup.json      # may reference "base" as its parent

The encoding is deterministic (sorted keys, fixed indentation, trailing
newline) so that an unchanged database state produces byte-identical files
and version-control diffs stay meaningful.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional, Union

from .errors import CorruptArtifactError, InvalidRowError, NotFoundError
from .models import Fixpoint, FixpointInfo


logger = logging.getLogger(__name__)

FILE_SUFFIX = ".json"


class FixpointStore:
    """Filesystem storage for fixpoints."""

    def __init__(self, base_dir: Union[str, Path], create_dirs: bool = True):
        """
        Initialize the store.

        Args:
            base_dir: Directory holding the fixpoint files
            create_dirs: Whether to create the directory if it is missing
        """
        self.base_dir = Path(base_dir)
        if create_dirs:
            self.base_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, name: str) -> Path:
        """Get path to fixpoint file."""
        if not name or "/" in name or "\\" in name or name.startswith("."):
            raise ValueError(f"Invalid fixpoint name: {name!r}")
        return self.base_dir / f"{name}{FILE_SUFFIX}"

    # =========================================================================
    # Encoding
    # =========================================================================

    @staticmethod
    def encode(fixpoint: Fixpoint) -> str:
        """Encode a fixpoint. Empty tables are stripped."""
        text = json.dumps(
            fixpoint.to_dict(),
            indent=2,
            sort_keys=True,
            ensure_ascii=False,
            allow_nan=False,
        )
        return text + "\n"

    @staticmethod
    def decode(name: Optional[str], text: str) -> Fixpoint:
        """
        Decode a fixpoint.

        Raises:
            CorruptArtifactError: If the text is not a valid fixpoint.
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CorruptArtifactError(name, f"invalid JSON: {e}") from e

        try:
            fixpoint = Fixpoint.from_dict(name, data)
        except InvalidRowError as e:
            raise CorruptArtifactError(name, str(e)) from e
        except ValueError as e:
            raise CorruptArtifactError(name, str(e)) from e

        if name is not None and fixpoint.parent == name:
            raise CorruptArtifactError(name, "fixpoint is its own parent")
        return fixpoint

    # =========================================================================
    # Core Operations
    # =========================================================================

    def exists(self, name: str) -> bool:
        """Check if a fixpoint is stored, without loading it."""
        return self.path_for(name).is_file()

    def load(self, name: str) -> Fixpoint:
        """
        Load a fixpoint.

        Raises:
            NotFoundError: If no fixpoint is stored under this name.
            CorruptArtifactError: If the stored file is malformed.
        """
        path = self.path_for(name)
        if not path.is_file():
            raise NotFoundError(name)

        logger.debug(f"Loading fixpoint {name} from {path}")
        text = path.read_text(encoding="utf-8")
        return self.decode(name, text)

    def save(self, fixpoint: Fixpoint, name: Optional[str] = None) -> Path:
        """
        Write a fixpoint, replacing any file under the same name.

        Callers that must not overwrite check exists() first.

        Args:
            fixpoint: The fixpoint to write
            name: Storage name (defaults to fixpoint.name)

        Returns:
            Path to the written file
        """
        name = name or fixpoint.name
        if not name:
            raise ValueError("Fixpoint has no name to save under")
        if fixpoint.parent == name:
            raise ValueError(f"Fixpoint {name!r} cannot be its own parent")

        path = self.path_for(name)
        text = self.encode(fixpoint)
        with open(path, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
        fixpoint.name = name

        logger.debug(f"Wrote fixpoint {name} to {path} ({len(text)} bytes)")
        return path

    def delete(self, name: str) -> bool:
        """
        Delete a fixpoint.

        Returns:
            True if deleted, False if not found
        """
        path = self.path_for(name)
        if path.is_file():
            path.unlink()
            logger.debug(f"Deleted fixpoint {name}")
            return True
        return False

    # =========================================================================
    # Query Operations
    # =========================================================================

    def list_names(self) -> List[str]:
        """Names of all stored fixpoints, sorted."""
        return sorted(path.stem for path in self.base_dir.glob(f"*{FILE_SUFFIX}"))

    def info(self, name: str) -> FixpointInfo:
        """Summary of one stored fixpoint."""
        fixpoint = self.load(name)
        return FixpointInfo(
            name=name,
            parent=fixpoint.parent,
            table_count=len(fixpoint.table_names),
            row_count=fixpoint.row_count,
            cleared_count=len(fixpoint.cleared),
            size_bytes=self.path_for(name).stat().st_size,
        )

    def list_fixpoints(self) -> List[FixpointInfo]:
        """
        List all fixpoints with summary info.

        Unreadable files are reported in the log and left out.
        """
        infos = []
        for name in self.list_names():
            try:
                infos.append(self.info(name))
            except CorruptArtifactError as e:
                logger.warning(f"Skipping {name}: {e.reason}")
        return infos
