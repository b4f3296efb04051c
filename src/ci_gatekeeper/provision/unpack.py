# src/ci_gatekeeper/provision/unpack.py
"""
Archive extraction and executable-bit handling.
"""

import logging
import stat
import tarfile
import zipfile
from pathlib import Path

from ci_gatekeeper.errors import ProvisionFailure
from ci_gatekeeper.models import UnpackFormat

logger = logging.getLogger(__name__)

_TAR_MODES = {
    UnpackFormat.TAR_GZ: "r:gz",
    UnpackFormat.TAR: "r:",
}


def unpack(artifact: str, archive: Path, dest: Path, fmt: UnpackFormat) -> None:
    """Extract archive into dest. UnpackFormat.NONE is a no-op."""
    if fmt == UnpackFormat.NONE:
        return
    dest.mkdir(parents=True, exist_ok=True)
    try:
        if fmt in _TAR_MODES:
            with tarfile.open(archive, _TAR_MODES[fmt]) as tar:
                if hasattr(tarfile, "data_filter"):
                    tar.extractall(dest, filter="data")
                else:
                    tar.extractall(dest)
        elif fmt == UnpackFormat.ZIP:
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(dest)
        else:
            raise ProvisionFailure(artifact, f"unsupported archive format: {fmt.value}")
    except (tarfile.TarError, zipfile.BadZipFile, EOFError) as e:
        raise ProvisionFailure(artifact, f"cannot unpack {archive.name}: {e}") from e
    except OSError as e:
        raise ProvisionFailure(artifact, f"cannot unpack {archive.name}: {e}") from e
    logger.debug("Unpacked %s into %s", archive.name, dest)


def make_executable(root: Path, patterns: list[str]) -> list[Path]:
    """chmod +x every file under root matching one of the glob patterns."""
    changed = []
    for pattern in patterns:
        for path in sorted(root.glob(pattern)):
            if not path.is_file():
                continue
            mode = path.stat().st_mode
            path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
            changed.append(path)
    return changed
