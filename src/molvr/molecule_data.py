from __future__ import annotations

import gzip
import io
import logging
import math
import re
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

import numpy as np

FileLike = Union[str, Path, io.BytesIO, io.StringIO]

logger = logging.getLogger(__name__)

# --- Errors ------------------------------------------------------------------


class ParseError(ValueError):
    """Raised when an ATOM record has a field that cannot be converted."""


class UnknownElementError(KeyError):
    """Raised when an element symbol has no covalent radius."""


# --- Data containers ---------------------------------------------------------


@dataclass(frozen=True)
class AtomRecord:
    index: int  # dense 0-based order of appearance
    serial: int
    name: str  # e.g. "CA"
    element: str  # 'C', 'N', 'O', 'S', 'H', 'P'
    resname: str  # e.g. "ALA"
    chain: str
    resnum: int  # residue sequence number
    x: float  # Å
    y: float
    z: float

    def __repr__(self) -> str:
        return f"<atom {self.index} {self.name} {self.resname} {self.resnum}>"

    @property
    def position(self) -> np.ndarray:
        return np.array((self.x, self.y, self.z), dtype=float)


@dataclass(frozen=True)
class Bond:
    a: int
    b: int

    def __post_init__(self):
        if self.a == self.b:
            raise ValueError(f"Bond endpoints must differ, got {self.a} twice")
        if self.a > self.b:
            lo, hi = self.b, self.a
            object.__setattr__(self, "a", lo)
            object.__setattr__(self, "b", hi)


@dataclass(frozen=True)
class RejectedRecord:
    lineno: int  # 1-based line number in the source text
    line: str
    reason: str


@dataclass
class ParseResult:
    atoms: list[AtomRecord] = field(default_factory=list)
    rejected: list[RejectedRecord] = field(default_factory=list)

    def __iter__(self) -> Iterator[AtomRecord]:
        return iter(self.atoms)

    def __len__(self) -> int:
        return len(self.atoms)

    def __getitem__(self, idx: int) -> AtomRecord:
        return self.atoms[idx]


# --- Element & radius table --------------------------------------------------

# Covalent radii in Å (Cordero et al. 2008). Order matters: lookup compares the
# first character of the element symbol and the first match wins.
COVALENT_RADII: tuple[tuple[str, float], ...] = (
    ("C", 0.76),
    ("N", 0.71),
    ("O", 0.66),
    ("S", 1.05),
    ("H", 0.31),
    ("P", 1.07),
)

BOND_TOLERANCE = 1.2


def covalent_radius(element: str) -> float:
    """Return the covalent radius (Å) for an element symbol."""
    if element:
        first = element[0]
        for symbol, radius in COVALENT_RADII:
            if first == symbol[0]:
                return radius
    raise UnknownElementError(element)


# --- Bond inference ----------------------------------------------------------


def infer_bonds(positions, radii: Sequence[float]) -> list[Bond]:
    """
    Infer covalent bonds from interatomic distances.

    Atoms i < j are bonded when |p_i - p_j|^2 < 1.2 * (r_i + r_j)^2, with
    positions in the same (source) units as the radii.

    This is a pairwise O(n^2) scan, vectorized per row. It is fine for the
    few hundred atoms of a typical structure; larger inputs would need a
    spatial index.
    """
    xyz = np.asarray(positions, dtype=float).reshape(-1, 3)
    r = np.asarray(radii, dtype=float)
    if len(r) != len(xyz):
        raise ValueError(f"Got {len(xyz)} positions but {len(r)} radii")

    bonds: list[Bond] = []
    n = len(xyz)
    for i in range(n - 1):
        delta = xyz[i + 1 :] - xyz[i]
        d2 = np.einsum("ij,ij->i", delta, delta)
        threshold = BOND_TOLERANCE * (r[i] + r[i + 1 :]) ** 2
        for j in np.nonzero(d2 < threshold)[0]:
            bonds.append(Bond(i, i + 1 + int(j)))
    return bonds


def is_bonded(p_a, p_b, r_a: float, r_b: float) -> bool:
    delta = np.asarray(p_a, dtype=float) - np.asarray(p_b, dtype=float)
    return float(np.dot(delta, delta)) < BOND_TOLERANCE * (r_a + r_b) ** 2


# --- Display transform -------------------------------------------------------


@dataclass(frozen=True)
class DisplayTransform:
    """Uniform scale plus translation from source units (Å) to world units."""

    scale: float = 1.0
    offset: tuple[float, float, float] = (0.0, 0.0, 0.0)

    def __post_init__(self):
        if not self.scale > 0.0:
            raise ValueError(f"Display scale must be positive, got {self.scale}")

    @classmethod
    def centered(cls, positions, *, scale: float, origin=(0.0, 0.0, 0.0)) -> DisplayTransform:
        """Transform that puts the centroid of `positions` at `origin`."""
        xyz = np.asarray(positions, dtype=float).reshape(-1, 3)
        centroid = xyz.mean(axis=0) if len(xyz) else np.zeros(3)
        off = np.asarray(origin, dtype=float) - scale * centroid
        return cls(scale=float(scale), offset=(float(off[0]), float(off[1]), float(off[2])))

    def to_world(self, positions) -> np.ndarray:
        return np.asarray(positions, dtype=float) * self.scale + np.asarray(self.offset)

    def to_source(self, positions) -> np.ndarray:
        return (np.asarray(positions, dtype=float) - np.asarray(self.offset)) / self.scale


# --- Parser ------------------------------------------------------------------

RECORD_MARKER = "ATOM"


class PDBRecordReader:
    """
    Reader for the ATOM records of a PDB(-like) coordinate file.

    - Only lines starting with "ATOM" are records; everything else is skipped.
    - Stops at the first ENDMDL, so only the first model is read.
    - Fixed columns first, whitespace tokens as a fallback for misaligned lines.
    - Records that still fail, or carry an element with no covalent radius, are
      rejected (logged and kept in ParseResult.rejected) unless strict=True.
    """

    def __init__(self, *, strict: bool = False):
        self.strict = strict

    def read(self, file: FileLike) -> ParseResult:
        return self._parse(self._open_text(file))

    def from_string(self, pdb_text: str) -> ParseResult:
        return self._parse(pdb_text.splitlines())

    # -- internals --
    @staticmethod
    def _open_text(file: FileLike) -> Iterable[str]:
        if isinstance(file, io.StringIO):
            yield from file.getvalue().splitlines()
            return

        if isinstance(file, io.BytesIO):
            text = io.TextIOWrapper(file, encoding="utf-8", newline="").read()
            yield from text.splitlines()
            return

        p = Path(file)
        opener = gzip.open if p.suffix == ".gz" else open
        with opener(p, "rt", encoding="utf-8", newline="") as fh:
            for line in fh:
                yield line.rstrip("\r\n")

    def _parse(self, lines: Iterable[str]) -> ParseResult:
        result = ParseResult()
        for lineno, raw in enumerate(lines, start=1):
            if raw[0:6].strip().upper() == "ENDMDL":
                break
            if raw[0:4] != RECORD_MARKER:
                continue
            try:
                atom = _parse_atom_line(raw, index=len(result.atoms))
                covalent_radius(atom.element)
            except (ParseError, UnknownElementError) as exc:
                if self.strict:
                    raise
                reason = _describe(exc)
                logger.warning("Rejected ATOM record on line %d: %s", lineno, reason)
                result.rejected.append(RejectedRecord(lineno, raw, reason))
                continue
            result.atoms.append(atom)
        return result


def parse_pdb_text(pdb_text: str, *, strict: bool = False) -> ParseResult:
    return PDBRecordReader(strict=strict).from_string(pdb_text)


# --- parsing utilities -------------------------------------------------------


def _describe(exc: Exception) -> str:
    if isinstance(exc, UnknownElementError):
        return f"unknown element {exc.args[0]!r}"
    return str(exc)


def _deduce_element(atomname: str, element_hint: str = "") -> str:
    """
    Element symbol for a record, case kept as written.
      1) PDB element column if present (letters only).
      2) First letter of the atom name after stripping leading digits.
    """
    hint = re.sub(r"[^A-Za-z]", "", element_hint or "")
    if hint:
        return hint
    stripped = re.sub(r"^\d+", "", atomname or "").strip()
    return stripped[0] if stripped else ""


def _parse_atom_line(line: str, index: int) -> AtomRecord:
    try:
        return _parse_fixed_columns(line, index)
    except ParseError as fixed_error:
        try:
            return _parse_tokens(line, index)
        except ParseError:
            raise fixed_error from None


def _parse_fixed_columns(line: str, index: int) -> AtomRecord:
    # PDB v3.3 column mapping, simplified
    name = line[12:16].strip()
    resname = line[17:20].strip()
    if not name:
        raise ParseError("Missing atom name")
    if not resname.isalpha():
        raise ParseError(f"Expected residue name in field '{line[17:20]}'")
    resnum = _require_int(line[22:26])
    x = _require_float(line[30:38])
    y = _require_float(line[38:46])
    z = _require_float(line[46:54])
    serial = _safe_int(line[6:11], default=index + 1)
    chain = line[21].strip() if len(line) > 21 else ""
    element = _deduce_element(name, line[76:78] if len(line) > 76 else "")
    return AtomRecord(
        index=index,
        serial=serial,
        name=name,
        element=element,
        resname=resname,
        chain=chain,
        resnum=resnum,
        x=x,
        y=y,
        z=z,
    )


def _parse_tokens(line: str, index: int) -> AtomRecord:
    # ATOM serial name resname [chain] resnum x y z [occupancy bfactor] [element]
    tokens = line.split()
    if len(tokens) < 8 or tokens[0] != RECORD_MARKER:
        raise ParseError(f"Too few fields in record '{line.strip()}'")
    _, serial_tok, name, resname = tokens[:4]
    rest = tokens[4:]
    chain = ""
    if rest and rest[0].isalpha() and len(rest[0]) == 1:
        chain = rest.pop(0)
    if len(rest) < 4 or not resname.isalpha():
        raise ParseError(f"Too few fields in record '{line.strip()}'")
    resnum = _require_int(rest[0])
    x, y, z = (_require_float(tok) for tok in rest[1:4])
    trailing = rest[4:]
    hint = trailing[-1] if trailing and trailing[-1].isalpha() else ""
    return AtomRecord(
        index=index,
        serial=_safe_int(serial_tok, default=index + 1),
        name=name,
        element=_deduce_element(name, hint),
        resname=resname,
        chain=chain,
        resnum=resnum,
        x=x,
        y=y,
        z=z,
    )


def _safe_int(s: str, default: Optional[int] = None) -> Optional[int]:
    try:
        return int(s.strip())
    except ValueError:
        return default


def _require_int(s: str) -> int:
    try:
        return int(s.strip())
    except ValueError:
        raise ParseError(f"Expected integer in field '{s}'") from None


def _require_float(s: str) -> float:
    try:
        value = float(s.strip())
    except ValueError:
        raise ParseError(f"Expected float in field '{s}'") from None
    if not math.isfinite(value):
        raise ParseError(f"Non-finite coordinate in field '{s}'")
    return value
