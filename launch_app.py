from __future__ import annotations

import hashlib
import os
import subprocess
import sys
import venv
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parent
VENV_DIR = PROJECT_ROOT / ".venv"
PROJECT_FILE = PROJECT_ROOT / "pyproject.toml"
INSTALL_MARKER = VENV_DIR / ".project.installed"
APP_ENTRYPOINT = PROJECT_ROOT / "app" / "main.py"
API_MODULE = "api:app"


def venv_python() -> Path:
    if os.name == "nt":
        return VENV_DIR / "Scripts" / "python.exe"
    return VENV_DIR / "bin" / "python"


def ensure_virtualenv() -> None:
    if VENV_DIR.exists() and venv_python().exists():
        return

    print(f"[launcher] Creating virtual environment at {VENV_DIR}...")
    builder = venv.EnvBuilder(with_pip=True, upgrade=False, clear=False)
    builder.create(VENV_DIR)


def project_signature() -> str:
    if not PROJECT_FILE.exists():
        raise FileNotFoundError(f"Project file not found: {PROJECT_FILE}")
    return hashlib.sha256(PROJECT_FILE.read_bytes()).hexdigest()


def ensure_installed() -> None:
    python_exec = venv_python()
    signature = project_signature()

    if INSTALL_MARKER.exists() and INSTALL_MARKER.read_text().strip() == signature:
        print("[launcher] Dependencies satisfied.")
        return

    print("[launcher] Making sure pip is up to date...")
    subprocess.check_call([str(python_exec), "-m", "pip", "install", "--upgrade", "pip"])

    print(f"[launcher] Installing project from {PROJECT_FILE}...")
    subprocess.check_call([str(python_exec), "-m", "pip", "install", "-e", str(PROJECT_ROOT)])

    INSTALL_MARKER.write_text(signature)


def launch_app(argv: list[str]) -> int:
    ensure_virtualenv()
    ensure_installed()

    python_exec = venv_python()
    if "--api" in argv:
        print("[launcher] Starting Roster Viewer API on http://127.0.0.1:8000 ...")
        return subprocess.call(
            [str(python_exec), "-m", "uvicorn", API_MODULE, "--app-dir", str(APP_ENTRYPOINT.parent)]
        )

    if not APP_ENTRYPOINT.exists():
        raise FileNotFoundError(f"App entrypoint not found: {APP_ENTRYPOINT}")

    print("[launcher] Starting Roster Viewer...")
    return subprocess.call([str(python_exec), str(APP_ENTRYPOINT)])


if __name__ == "__main__":
    try:
        exit_code = launch_app(sys.argv[1:])
    except subprocess.CalledProcessError as exc:
        print(f"[launcher] Command failed with exit code {exc.returncode}", file=sys.stderr)
        sys.exit(exc.returncode)
    except Exception as exc:
        print(f"[launcher] {exc}", file=sys.stderr)
        sys.exit(1)
    else:
        sys.exit(exit_code)
