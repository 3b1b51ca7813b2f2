"""Zipping a result set and uploading it to a telescope results server."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any, Dict, Optional

import requests

from telescope.exceptions import UploadError

logger = logging.getLogger(__name__)

UPLOAD_TIMEOUT = 60


def zip_results(results_dir: Path) -> Path:
    """Zip results_dir into a sibling <test id>.zip"""
    archive = shutil.make_archive(str(results_dir), "zip", root_dir=results_dir)
    logger.info("Zipped results to %s", archive)
    return Path(archive)


def _post_zip(session, upload_url: str, zip_path: Path, data: Dict[str, str]):
    with open(zip_path, "rb") as f:
        files = {"file": (zip_path.name, f, "application/zip")}
        return session.post(upload_url, data=data, files=files, timeout=UPLOAD_TIMEOUT)


def upload_results(
    zip_path: Path,
    upload_url: str,
    name: Optional[str] = None,
    description: Optional[str] = None,
    source: str = "agent",
    session: Optional[requests.Session] = None,
) -> Dict[str, Any]:
    """
    POST a zipped result set to upload_url.

    Returns:
        dict: the server's JSON reply, including ``testId``

    Raises:
        UploadError: on a rejected upload (a duplicate carries the existing
            test id) or when the server is unreachable
    """
    session = session or requests.Session()
    data = {"source": source}
    if name:
        data["name"] = name
    if description:
        data["description"] = description

    try:
        response = _post_zip(session, upload_url, Path(zip_path), data)
    except requests.RequestException as e:
        raise UploadError(f"Upload to {upload_url} failed: {e}") from e

    try:
        payload = response.json() if response.content else {}
    except ValueError:
        payload = {}

    # 409: the same zip was uploaded before
    if response.status_code == 409:
        raise UploadError(
            payload.get("error", "Duplicate upload"), test_id=payload.get("testId")
        )
    if not response.ok:
        raise UploadError(
            f"Upload rejected with HTTP {response.status_code}: "
            f"{payload.get('error', response.text)}"
        )
    logger.info("Uploaded %s as test %s", zip_path, payload.get("testId"))
    return payload
