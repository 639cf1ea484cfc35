import os
import sys
import subprocess
import tomllib
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SCRIPT = PROJECT_ROOT / "scripts" / "heliotrope_cli.py"
GREENWICH = ["--name", "Greenwich", "--lat", "51.4769", "--lon", "-0.0005"]


def run_cli(*args, timeout=60):
    # Ensure package is importable: add src/ to PYTHONPATH
    env = os.environ.copy()
    src_dir = PROJECT_ROOT / "src"
    env["PYTHONPATH"] = os.pathsep.join(
        filter(None, [env.get("PYTHONPATH", ""), str(src_dir)])
    )
    cmd = [sys.executable, str(SCRIPT), *map(str, args)]
    return subprocess.run(cmd, env=env, capture_output=True, text=True, timeout=timeout)


def write_profile(path, body):
    path.write_text(body, encoding="utf-8")
    return path


def _values(stdout):
    out = {}
    for line in stdout.splitlines():
        if "=" in line:
            k, v = line.split("=", 1)
            out[k.strip()] = v.strip()
    return out


def test_one_shot_default_hides_equatorial():
    proc = run_cli(*GREENWICH, "--time", "2024-06-20T12:02:00Z")
    assert proc.returncode == 0, proc.stderr
    assert "[2024-06-20T12:02:00Z]" in proc.stdout
    v = _values(proc.stdout)
    assert v["RightAscensionHrs"] == "----"
    assert v["DeclinationRounded"] == "----"
    assert abs(float(v["AltitudeRounded"]) - 62.0) < 0.2
    assert abs(float(v["AzimuthRounded"]) - 180.0) < 1.0


def test_one_shot_with_equatorial_override():
    proc = run_cli(*GREENWICH, "--time", "1718884920",
                   "--set", "heliotrope.use_equatorial=true")
    assert proc.returncode == 0, proc.stderr
    v = _values(proc.stdout)
    assert v["RightAscensionHrs"].endswith("s")
    assert v["RightAscensionHrs"] != "----"
    assert abs(float(v["DeclinationRounded"]) - 23.4) < 0.1


def test_disabled_profile_exits_cleanly(tmp_path):
    cfg = write_profile(tmp_path / "off.toml", "[heliotrope]\nenabled = false\n")
    proc = run_cli("--config", cfg, *GREENWICH)
    assert proc.returncode == 0, proc.stderr
    assert "Disabled by configuration." in proc.stdout


def test_track_to_tsv(tmp_path):
    out = tmp_path / "track.tsv"
    proc = run_cli(*GREENWICH,
                   "--track-start", "2024-06-20T00:00:00Z",
                   "--track-end", "2024-06-20T01:00:00Z",
                   "--step", "600", "--out", out)
    assert proc.returncode == 0, proc.stderr
    assert "Track: 7 rows" in proc.stdout
    lines = [ln for ln in out.read_text().splitlines() if ln and not ln.startswith("#")]
    assert lines[0].startswith("timestamp\tunix")
    assert len(lines) == 8
    assert lines[1].startswith("2024-06-20T00:00:00Z")


def test_track_to_stdout():
    proc = run_cli(*GREENWICH,
                   "--track-start", "0", "--track-end", "1200", "--step", "600")
    assert proc.returncode == 0, proc.stderr
    lines = [ln for ln in proc.stdout.splitlines() if ln.strip()]
    assert len(lines) == 3
    assert lines[0].startswith("1970-01-01T00:00:00Z\taz=")


def test_write_back_repairs_invalid_flags(tmp_path):
    cfg = write_profile(
        tmp_path / "home.toml",
        '[site]\nname = "Lab"\nlatitude_deg = 10.0\nlongitude_deg = 20.0\n'
        '[heliotrope]\nuse_equatorial = "yes"\n',
    )
    proc = run_cli("--config", cfg, "--write-back", "--time", "0")
    assert proc.returncode == 0, proc.stderr
    assert "Repaired" in proc.stdout
    with open(cfg, "rb") as f:
        data = tomllib.load(f)
    assert data["heliotrope"]["use_equatorial"] is False
    assert data["heliotrope"]["az_0to360"] is True
    assert data["site"]["latitude_deg"] == 10.0


def test_dump_effective_config(tmp_path):
    cfg = write_profile(tmp_path / "home.toml", "[heliotrope]\naz_0to360 = \"0\"\n")
    proc = run_cli("--config", cfg, *GREENWICH, "--dump-effective-config")
    assert proc.returncode == 0, proc.stderr
    data = tomllib.loads(proc.stdout)
    assert data["heliotrope"]["az_0to360"] is False
    assert data["site"]["latitude_deg"] == 51.4769


def test_poll_with_count(tmp_path):
    out = tmp_path / "poll.tsv"
    proc = run_cli(*GREENWICH,
                   "--set", "heliotrope.poll_interval_s=0.05",
                   "--set", "heliotrope.initial_delay_s=0",
                   "--poll", "--count", "2", "--out", out)
    assert proc.returncode == 0, proc.stderr
    assert "Done: 2 report(s)." in proc.stdout
    rows = [ln for ln in out.read_text().splitlines() if ln and not ln.startswith("#")]
    assert len(rows) == 3


def test_missing_config_is_an_error(tmp_path):
    proc = run_cli("--config", tmp_path / "absent.toml")
    assert proc.returncode == 2
    assert "not found" in proc.stderr


def test_invalid_backend_is_an_error():
    proc = run_cli("--set", "heliotrope.backend=skyfield")
    assert proc.returncode == 2
    assert "Unsupported ephemeris backend" in proc.stderr


def test_write_back_requires_config():
    proc = run_cli("--write-back")
    assert proc.returncode == 2


def test_examples():
    proc = run_cli("--examples")
    assert proc.returncode == 0
    assert proc.stdout.startswith("Command-line usage examples")
    assert "--track-start" in proc.stdout
    assert "Notes" not in proc.stdout


def test_write_back_keeps_valid_profile_value_under_bad_override(tmp_path):
    cfg = write_profile(
        tmp_path / "home.toml",
        '[site]\nname = "Lab"\nlatitude_deg = 10.0\nlongitude_deg = 20.0\n'
        '[heliotrope]\nenabled = true\nuse_equatorial = true\nra_0to360 = true\n'
        'az_0to360 = true\nreport_raw = true\n',
    )
    before = cfg.read_text(encoding="utf-8")
    proc = run_cli("--config", cfg, "--set", "heliotrope.use_equatorial=maybe",
                   "--write-back", "--time", "0")
    assert proc.returncode == 0, proc.stderr
    assert "Repaired" not in proc.stdout
    assert cfg.read_text(encoding="utf-8") == before
    with open(cfg, "rb") as f:
        assert tomllib.load(f)["heliotrope"]["use_equatorial"] is True


def test_poll_appends_to_existing_tsv(tmp_path):
    out = tmp_path / "poll.tsv"
    args = (*GREENWICH,
            "--set", "heliotrope.poll_interval_s=0.05",
            "--set", "heliotrope.initial_delay_s=0",
            "--poll", "--count", "1", "--out", out)
    for _ in range(2):
        proc = run_cli(*args)
        assert proc.returncode == 0, proc.stderr
    text = out.read_text()
    assert text.count("# === Metadata") == 1
    rows = [ln for ln in text.splitlines() if ln and not ln.startswith("#")]
    assert len(rows) == 3


def test_one_shot_replaces_existing_tsv(tmp_path):
    out = tmp_path / "once.tsv"
    for _ in range(2):
        proc = run_cli(*GREENWICH, "--time", "0", "--out", out)
        assert proc.returncode == 0, proc.stderr
    rows = [ln for ln in out.read_text().splitlines() if ln and not ln.startswith("#")]
    assert len(rows) == 2
