import subprocess
import sys


def test_app_help_runs():
    proc = subprocess.run(
        [sys.executable, "-m", "ar_rosbridge.app", "-h"],
        capture_output=True,
        text=True,
        check=False,
    )
    assert proc.returncode == 0
    out = proc.stdout + proc.stderr
    assert "main entrypoint" in out
    assert "run" in out
    assert "show-config" in out


def test_run_help_runs():
    proc = subprocess.run(
        [sys.executable, "-m", "ar_rosbridge.app", "run", "-h"],
        capture_output=True,
        text=True,
        check=False,
    )
    assert proc.returncode == 0
    out = proc.stdout + proc.stderr
    assert "--endpoint" in out
    assert "--rate" in out
    assert "--disable-stream" in out


def test_show_config_applies_overrides():
    proc = subprocess.run(
        [
            sys.executable,
            "-m",
            "ar_rosbridge.app",
            "show-config",
            "--endpoint",
            "10.0.0.2:9090",
            "--rate",
            "depth=5",
            "--disable-stream",
            "camera",
        ],
        capture_output=True,
        text=True,
        check=False,
    )
    assert proc.returncode == 0, proc.stderr
    out = proc.stdout
    assert "10.0.0.2:9090" in out
    assert "topic: /ipad/depth" in out
    assert "rate: 5.0" in out
    assert "enabled: false" in out


def test_run_requires_endpoint():
    proc = subprocess.run(
        [sys.executable, "-m", "ar_rosbridge.manager", "--duration", "0.1"],
        capture_output=True,
        text=True,
        check=False,
    )
    assert proc.returncode == 2
    assert "no endpoint" in proc.stdout
