"""Utility functions for kvm-install-vm."""

from __future__ import annotations

import os
import shlex
import subprocess
import tempfile
import time
from http.client import HTTPException
from pathlib import Path
from typing import Callable, List, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from kvminstall.constants import AFFIRMATIVE, TRUTHY
from kvminstall.exceptions import DownloadError

_verbose = False


def set_verbose(enabled: bool) -> None:
    global _verbose
    _verbose = enabled


def log(level: str, message: str) -> None:
    """Lightweight structured logging compatible with existing colour expectation."""
    if level == "DEBUG" and not _verbose:
        return
    colours = {
        "INFO": "\033[0;34m",
        "WARN": "\033[1;33m",
        "ERROR": "\033[0;31m",
        "SUCCESS": "\033[0;32m",
        "DEBUG": "\033[0;90m",
    }
    colour = colours.get(level, "")
    reset = "\033[0m" if colour else ""
    print(f"{colour}[{level}]{reset} {message}", flush=True)


def get_env(name: str, default: Optional[str] = None, environ: Optional[dict] = None) -> Optional[str]:
    source = os.environ if environ is None else environ
    return source.get(name, default)


def get_env_bool(name: str, default: bool = False, environ: Optional[dict] = None) -> bool:
    raw = get_env(name, environ=environ)
    if raw is None:
        return default
    return raw.lower() in TRUTHY


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def append_log(log_file: Optional[Path], text: str) -> None:
    """Append a block of text to the per-VM log file."""
    if log_file is None:
        return
    with open(log_file, "a") as fh:
        fh.write(text if text.endswith("\n") else text + "\n")


def run(
    cmd: List[str],
    check: bool = True,
    log_file: Optional[Path] = None,
    **kwargs,
) -> subprocess.CompletedProcess:
    """Run command with logging.

    With ``log_file`` set, stdout and stderr are appended to that file instead of
    the terminal, preceded by the command line itself.
    """
    log("DEBUG", f"Running: {shlex.join(cmd)}")
    if log_file is None:
        return subprocess.run(cmd, check=check, text=True, **kwargs)
    with open(log_file, "a") as fh:
        fh.write(f"$ {shlex.join(cmd)}\n")
        fh.flush()
        return subprocess.run(cmd, check=check, text=True, stdout=fh, stderr=subprocess.STDOUT, **kwargs)


def confirm(question: str, input_fn: Optional[Callable[[str], str]] = None) -> bool:
    """Ask a yes/no question; anything but an explicit yes is a no."""
    input_fn = input_fn or input
    try:
        answer = input_fn(f"{question} [y/N]: ")
    except EOFError:
        return False
    return answer.strip().lower() in AFFIRMATIVE


def download_file(url: str, destination: Path, label: str = "Downloading") -> None:
    """Download a file with a progress bar using Python urllib."""
    log("INFO", f"{label}: {url}")
    req = Request(url, headers={"User-Agent": "kvm-install-vm/1.0"})
    try:
        response = urlopen(req, timeout=60)
    except HTTPError as exc:
        raise DownloadError(f"HTTP error downloading {url}: {exc.code} {exc.reason}")
    except URLError as exc:
        raise DownloadError(f"Failed to download {url}: {exc.reason}")

    total = response.headers.get("Content-Length")
    total_bytes = int(total) if total else None
    downloaded = 0
    start_time = time.time()

    with response, tempfile.NamedTemporaryFile(delete=False, dir=destination.parent) as tmp:
        tmp_path = Path(tmp.name)
        try:
            chunk_size = 1024 * 256  # 256 KiB
            while True:
                chunk = response.read(chunk_size)
                if not chunk:
                    break
                tmp.write(chunk)
                downloaded += len(chunk)

                elapsed = time.time() - start_time
                speed = downloaded / elapsed if elapsed > 0 else 0
                downloaded_mb = downloaded / (1024 * 1024)

                if total_bytes:
                    total_mb = total_bytes / (1024 * 1024)
                    pct = downloaded * 100 / total_bytes
                    bar_len = 30
                    filled = int(bar_len * downloaded / total_bytes)
                    bar = "#" * filled + "-" * (bar_len - filled)
                    print(
                        f"\r  [{bar}] {pct:5.1f}% {downloaded_mb:.1f}/{total_mb:.1f} MiB "
                        f"({speed / (1024 * 1024):.1f} MiB/s)",
                        end="", flush=True,
                    )
                else:
                    print(f"\r  {downloaded_mb:.1f} MiB downloaded", end="", flush=True)
            print(flush=True)
        except (OSError, HTTPException) as exc:
            tmp_path.unlink(missing_ok=True)
            raise DownloadError(f"Failed to download {url}: {exc}") from exc
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
    tmp_path.replace(destination)
    log("SUCCESS", f"Downloaded {downloaded / (1024 * 1024):.1f} MiB in {time.time() - start_time:.1f}s")
