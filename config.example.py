# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKTRACK_APP_NAME": "App display name (default: tasktrack).",
    "TASKTRACK_LOG_LEVEL": "Console logging level (default: INFO).",
    # Matrix
    "TASKTRACK_MATRIX_HOMESERVER": "Matrix homeserver URL.",
    "TASKTRACK_MATRIX_USER_ID": "Matrix user ID (bot).",
    "TASKTRACK_MATRIX_PASSWORD": "Password for first login (session stored locally).",
    "TASKTRACK_MATRIX_ROOMS": "Optional allowlist of room IDs (empty => all rooms).",
    "TASKTRACK_AUTO_JOIN": "Accept room invites automatically (default: true).",
    # Paths (gitignored)
    "TASKTRACK_DATA_DIR": "Local data directory (default: .local/tasktrack).",
    "TASKTRACK_MATRIX_STORE_PATH": "Matrix session store (default: <data_dir>/matrix_store).",
    "TASKTRACK_TASKS_DB_PATH": "SQLite path (default: <data_dir>/tasks.sqlite3; SQLITE_PATH also accepted).",
    # Task states (glyph, :alias: or alias per state; DEFAULT_TASK_<STATE>_EMOJI also accepted)
    "TASKTRACK_OPEN_EMOJI": "Entry state emoji (default: eyes).",
    "TASKTRACK_WORKING_EMOJI": "Working state emoji (default: hammer).",
    "TASKTRACK_REVIEW_EMOJI": "Review state emoji (default: mag).",
    "TASKTRACK_FINISHED_EMOJI": "Terminal state emoji (default: white_check_mark).",
    # History scan
    "TASKTRACK_SCAN_LOOKBACK_DAYS": "How far back the history scan looks (default: 90).",
    "TASKTRACK_SCAN_HISTORY_LIMIT": "Max messages scanned per room (default: 1000).",
}
