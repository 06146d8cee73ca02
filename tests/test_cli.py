import json
import shlex
import subprocess
import sys


def run_cli(cmd: str) -> str:
    exe = [sys.executable, "-m", "molvr.cli"]
    return subprocess.check_output(exe + shlex.split(cmd), text=True)


def test_info():
    out = run_cli("info")
    d = json.loads(out)
    assert "version" in d["model"]
    assert "crambin-n-terminus" in d["model"]["structures"]


def test_build_embedded():
    d = json.loads(run_cli("build --structure crambin-n-terminus"))
    assert d["atoms"] == 33
    assert d["residues"] == 5
    assert d["constraints"] == 63
    assert d["constraints_by_kind"]["backbone-inter"] == 12
    assert d["rejected"] == []


def test_build_from_file(tmp_path):
    pdb = tmp_path / "pair.pdb"
    pdb.write_text(
        "ATOM      1  N   ALA A   1       0.000   0.000   0.000  1.00  0.00           N\n"
        "ATOM      2  CA  ALA A   1       1.460   0.000   0.000  1.00  0.00           C\n"
        "ATOM      3  C   ALA A   1       2.000   1.000   zzzzz  1.00  0.00           C\n"
    )
    d = json.loads(run_cli(f"build --pdb {pdb}"))
    assert d["atoms"] == 2
    assert d["bonds"] == 1
    assert d["rejected"][0]["line"] == 3


def test_simulate_headless():
    out = run_cli("simulate --frames 2 --platform Reference --no-gravity")
    d = json.loads(out)
    assert d["frames"] == 2
    assert d["rmsd_angstrom"] < 1e-2
