from __future__ import annotations

import subprocess
import sys
from pathlib import Path


SCRIPT_PATH = Path(__file__).resolve().parents[2] / "scripts" / "bootstrap_admin.py"


def _run_script(*args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        [sys.executable, str(SCRIPT_PATH), *args],
        check=check,
        capture_output=True,
        text=True,
    )


def test_bootstrap_script_emits_superuser_insert() -> None:
    output = _run_script("--email", "  Admin@SafeHire.Example ").stdout

    assert "insert into records (collection, id, data)" in output
    assert "values ('superusers', 'admin@safehire.example'" in output
    assert "jsonb_build_object('email', 'admin@safehire.example'" in output
    assert "on conflict (collection, id) do nothing;" in output
    assert "pg_notify('records_changed', 'superusers')" in output


def test_bootstrap_script_escapes_quotes() -> None:
    output = _run_script("--email", "o'brien@example.com").stdout

    assert "'o''brien@example.com'" in output


def test_bootstrap_script_emits_revoke() -> None:
    output = _run_script("--email", "admin@safehire.example", "--revoke").stdout

    assert "delete from records" in output
    assert "where collection = 'superusers' and id = 'admin@safehire.example';" in output
    assert "insert into" not in output


def test_bootstrap_script_rejects_blank_email() -> None:
    completed = _run_script("--email", "   ", check=False)

    assert completed.returncode != 0
    assert "email must not be empty" in completed.stderr
