# src/tasktrack/connectors/matrix_client.py

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from nio import AsyncClient, AsyncClientConfig, LoginResponse

logger = logging.getLogger(__name__)


def _session_path(store_dir: Path) -> Path:
    return store_dir / "session.json"


def _load_session(path: Path) -> dict[str, str]:
    data = json.loads(path.read_text("utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Expected JSON object")

    session = {k: str(data.get(k) or "") for k in ("access_token", "user_id", "device_id")}
    missing = [k for k, v in session.items() if not v]
    if missing:
        raise ValueError(f"session.json is missing {', '.join(missing)}")
    return session


def _save_session(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False), "utf-8")
    os.replace(tmp, path)
    try:
        os.chmod(path, 0o600)
    except OSError:
        # Not critical on Windows or restricted FS.
        pass


async def create_matrix_client(settings) -> AsyncClient | None:
    """
    Create a logged-in Matrix AsyncClient for the bot account.

    The access token is persisted to <matrix_store_path>/session.json so restarts
    reuse the same device instead of logging in again. The file holds a
    credential and must stay under the gitignored data dir.
    """
    homeserver = (getattr(settings, "matrix_homeserver", "") or "").strip()
    user_id = (getattr(settings, "matrix_user_id", "") or "").strip()
    password = (getattr(settings, "matrix_password", "") or "").strip()
    store_dir = Path(getattr(settings, "matrix_store_path", Path(".local/tasktrack/matrix_store")))

    if not homeserver or not user_id:
        logger.error(
            "Matrix is not configured: set TASKTRACK_MATRIX_HOMESERVER and TASKTRACK_MATRIX_USER_ID"
        )
        return None

    config = AsyncClientConfig(encryption_enabled=False, store_sync_tokens=False)
    client = AsyncClient(homeserver, user_id, config=config)

    session_file = _session_path(store_dir)
    if session_file.exists():
        try:
            session = _load_session(session_file)
            client.access_token = session["access_token"]
            client.user_id = session["user_id"]
            client.device_id = session["device_id"]
            logger.info("Matrix session restored for %s", client.user_id)
            return client
        except Exception as e:
            logger.warning("Failed to restore Matrix session.json, will try password login: %r", e)

    if not password:
        logger.error(
            "Matrix session.json not found and password is not set. "
            "Set TASKTRACK_MATRIX_PASSWORD once to bootstrap a session."
        )
        await client.close()
        return None

    device_name = f"{getattr(settings, 'app_name', 'tasktrack')} (Python)"
    logger.info("Logging in to Matrix (device_name=%r)...", device_name)

    resp = await client.login(password=password, device_name=device_name)
    if not isinstance(resp, LoginResponse):
        logger.error("Matrix login failed: %r", resp)
        await client.close()
        return None

    try:
        _save_session(
            session_file,
            {"access_token": resp.access_token, "user_id": resp.user_id, "device_id": resp.device_id},
        )
        logger.info("Matrix session saved to %s (user=%s)", session_file, resp.user_id)
    except OSError as e:
        # The client is logged in; only the restart shortcut is lost.
        logger.error("Failed to write Matrix session.json (%s): %r", session_file, e)

    return client
