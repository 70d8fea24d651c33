from __future__ import annotations

import subprocess
import sys
from pathlib import Path


SCRIPT_PATH = Path(__file__).resolve().parents[1] / "scripts" / "bootstrap_admin.py"


def _run_script(*args: str) -> str:
    completed = subprocess.run(
        [sys.executable, str(SCRIPT_PATH), *args],
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout


def test_bootstrap_script_emits_sql_for_user_id_target() -> None:
    user_id = "00000000-0000-0000-0000-000000000123"
    output = _run_script("--user-id", user_id, "--actor", "cli")

    assert "update auth.users" in output
    assert f"where id = '{user_id}'::uuid;" in output
    assert "jsonb_build_array('admin')" in output
    assert "values ('bootstrap', 'role_bootstrap', 'cli'" in output


def test_bootstrap_script_emits_sql_for_email_target() -> None:
    output = _run_script("--email", "o'brien@example.org", "--role", "user")

    assert "where email = 'o''brien@example.org';" in output
    assert "jsonb_build_object('email', 'o''brien@example.org', 'role', 'user')" in output


def test_bootstrap_script_requires_a_target() -> None:
    completed = subprocess.run(
        [sys.executable, str(SCRIPT_PATH)],
        capture_output=True,
        text=True,
    )
    assert completed.returncode != 0
    assert "--user-id" in completed.stderr
