"""GeoIP / GeoSite routing dataset refresher.

Each dataset is downloaded into a temporary file next to its final
location and renamed over it only when the download completed, so a
failed fetch leaves the previously cached copy untouched.
"""

from __future__ import annotations

import http.client
import logging
import urllib.error
import urllib.request
from pathlib import Path
from typing import TYPE_CHECKING

from xrayboot import __version__
from xrayboot.core.errors import AuxiliaryFetchFailed
from xrayboot.core.files import atomic_target

if TYPE_CHECKING:
    from xrayboot.config.settings import GeodataSettings, PathSettings

log = logging.getLogger(__name__)

_USER_AGENT = f"xrayboot/{__version__}"
_CHUNK_SIZE = 64 * 1024


def _declared_length(resp) -> int | None:
    """Return the response's ``Content-Length``, or ``None`` if it sent none."""
    value = resp.headers.get("Content-Length")
    if value is None:
        return None
    return int(value)


class GeodataRefresher:
    """Download the configured routing datasets.

    Parameters
    ----------
    settings:
        The ``geodata`` settings section.
    paths:
        Path settings; ``geodata_dir`` receives the files.

    """

    def __init__(self, settings: GeodataSettings, paths: PathSettings) -> None:
        self._settings = settings
        self._dir = Path(paths.geodata_dir)

    def url_for(self, dataset: str) -> str:
        return f"{self._settings.base_url}/{dataset}"

    def fetch(self, dataset: str) -> Path:
        """Download *dataset* and atomically replace the local copy.

        Raises
        ------
        AuxiliaryFetchFailed
            On any network or filesystem error.

        """
        url = self.url_for(dataset)
        target = self._dir / dataset
        req = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})  # noqa: S310
        try:
            with (
                urllib.request.urlopen(req, timeout=self._settings.timeout_seconds) as resp,  # noqa: S310
                atomic_target(target) as fh,
            ):
                expected = _declared_length(resp)
                received = 0
                while True:
                    chunk = resp.read(_CHUNK_SIZE)
                    if not chunk:
                        break
                    fh.write(chunk)
                    received += len(chunk)
                # http.client reports a short Content-Length body as a clean EOF
                if expected is not None and received < expected:
                    msg = f"truncated download ({received} of {expected} bytes)"
                    raise AuxiliaryFetchFailed(dataset, msg)
        except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError) as exc:
            raise AuxiliaryFetchFailed(dataset, str(exc)) from exc
        log.debug("Downloaded %s to %s", url, target)
        return target

    def refresh_all(self) -> dict[str, bool]:
        """Fetch every dataset independently.

        Failures are logged as warnings.  Returns a map of dataset name
        to success.
        """
        results: dict[str, bool] = {}
        for dataset in self._settings.files:
            try:
                self.fetch(dataset)
            except AuxiliaryFetchFailed as exc:
                log.warning("%s", exc.detail, extra={"dataset": dataset})
                results[dataset] = False
            else:
                results[dataset] = True
        log.info(
            "GeoIP/GeoSite data updated (%d/%d)",
            sum(results.values()),
            len(results),
        )
        return results
