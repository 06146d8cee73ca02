from __future__ import annotations

import argparse
import json
import logging

from .__version__ import __version__
from .molecule import Molecule
from .structures import DEFAULT_STRUCTURE, EMBEDDED_STRUCTURES, embedded_structure
from .vr_simulation import VRSimulation


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="molvr", description="Hand-tracked molecule builder")
    p.add_argument("--version", action="version", version=__version__)
    p.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr")
    sp = p.add_subparsers(dest="cmd")

    sp_info = sp.add_parser("info", help="Show package info")
    sp_info.set_defaults(func=_cmd_info)

    sp_build = sp.add_parser("build", help="Parse a structure and summarize bonds and constraints")
    _add_source_args(sp_build)
    sp_build.set_defaults(func=_cmd_build)

    sp_sim = sp.add_parser("simulate", help="Run frames headless and report conformational drift")
    _add_source_args(sp_sim)
    sp_sim.add_argument("--frames", type=int, default=60, help="Number of frames to run")
    sp_sim.add_argument("--platform", default=None, help="OpenMM platform name")
    sp_sim.add_argument("--no-gravity", action="store_true", help="Disable gravity")
    sp_sim.set_defaults(func=_cmd_simulate)
    return p


def _add_source_args(p: argparse.ArgumentParser) -> None:
    g = p.add_mutually_exclusive_group()
    g.add_argument(
        "--structure",
        default=DEFAULT_STRUCTURE,
        choices=sorted(EMBEDDED_STRUCTURES),
        help="Embedded structure name",
    )
    g.add_argument("--pdb", default=None, help="PDB file to read instead")


def _load(args: argparse.Namespace, **kwargs) -> Molecule:
    if args.pdb:
        return Molecule.from_file(args.pdb, **kwargs)
    return Molecule.from_pdb_text(embedded_structure(args.structure), **kwargs)


def _cmd_info(args: argparse.Namespace) -> None:
    info = {"version": __version__, "structures": sorted(EMBEDDED_STRUCTURES)}
    print(json.dumps({"model": info}, indent=2))


def _cmd_build(args: argparse.Namespace) -> None:
    mol = _load(args)
    print(json.dumps(mol.summary(), indent=2))


def _cmd_simulate(args: argparse.Namespace) -> None:
    mol = _load(args, scale=0.02, origin=(0.0, 1.4, -0.5))
    gravity = (0.0, 0.0, 0.0) if args.no_gravity else (0.0, -10.0, 0.0)
    sim = VRSimulation(molecule=mol, gravity=gravity, platform=args.platform)
    sim.run(args.frames)
    out = {
        "frames": sim.frame,
        "time": sim.world.time,
        "rmsd_angstrom": sim.conformation_rmsd(),
        "max_constraint_violation": sim.constraint_violation(),
    }
    print(json.dumps(out, indent=2))


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
