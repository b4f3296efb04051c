# src/ci_gatekeeper/provision/fetcher.py
"""
Artifact fetching over HTTP(S) and installer-script execution.

Downloads stream to disk; an empty body or a non-2xx response is a
ProvisionFailure. Nothing here retries: failures surface to the gate that
asked for the artifact.
"""

import logging
import subprocess
from pathlib import Path
from typing import Mapping, Optional

import httpx

from ci_gatekeeper.errors import ProvisionFailure

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class Fetcher:
    """Downloads artifacts with httpx."""

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        timeout: float = 600.0,
    ):
        self._client = client
        self.timeout = timeout

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                follow_redirects=True,
                timeout=httpx.Timeout(self.timeout, connect=30.0),
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def download(self, artifact: str, url: str, dest: Path) -> Path:
        """Download url to dest. Raises ProvisionFailure on any error."""
        dest.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Downloading %s from %s", artifact, url)
        try:
            with self._get_client().stream("GET", url) as response:
                response.raise_for_status()
                with open(dest, "wb") as f:
                    for chunk in response.iter_bytes(CHUNK_SIZE):
                        f.write(chunk)
        except httpx.HTTPStatusError as e:
            raise ProvisionFailure(
                artifact, f"HTTP {e.response.status_code} fetching {url}"
            ) from e
        except httpx.HTTPError as e:
            raise ProvisionFailure(artifact, f"error fetching {url}: {e}") from e
        except OSError as e:
            raise ProvisionFailure(artifact, f"cannot write {dest}: {e}") from e

        size = dest.stat().st_size
        if size == 0:
            raise ProvisionFailure(artifact, f"empty download from {url}")
        logger.debug("Downloaded %s (%d bytes)", dest, size)
        return dest


def run_shell(
    artifact: str,
    script: str,
    cwd: Path,
    env: Mapping[str, str],
    timeout: float,
) -> str:
    """Run a shell script with bash; non-zero exit is a ProvisionFailure."""
    try:
        result = subprocess.run(
            ["bash", "-eo", "pipefail", "-c", script],
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=cwd,
            env=dict(env),
        )
    except subprocess.TimeoutExpired as e:
        raise ProvisionFailure(artifact, f"installer timed out after {timeout}s") from e
    except FileNotFoundError as e:
        raise ProvisionFailure(artifact, "bash not found") from e

    output = result.stdout + result.stderr
    if result.returncode != 0:
        tail = output[-500:] if len(output) > 500 else output
        raise ProvisionFailure(
            artifact, f"installer exited with status {result.returncode}: {tail.strip()}"
        )
    return output
