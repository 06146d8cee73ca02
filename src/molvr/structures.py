"""Coordinate texts bundled with the package, selectable by name."""

from __future__ import annotations

# Residues 1-5 of crambin (PDB 1CRN), heavy atoms only.
CRAMBIN_N_TERMINUS = """\
HEADER    PLANT PROTEIN                           30-APR-81   1CRN
ATOM      1  N   THR A   1      17.047  14.099   3.625  1.00 13.79           N
ATOM      2  CA  THR A   1      16.967  12.784   4.338  1.00 10.80           C
ATOM      3  C   THR A   1      15.685  12.755   5.133  1.00  9.19           C
ATOM      4  O   THR A   1      15.268  13.825   5.594  1.00  9.85           O
ATOM      5  CB  THR A   1      18.170  12.703   5.337  1.00 13.02           C
ATOM      6  OG1 THR A   1      19.334  12.829   4.463  1.00 15.06           O
ATOM      7  CG2 THR A   1      18.150  11.546   6.304  1.00 14.23           C
ATOM      8  N   THR A   2      15.115  11.555   5.265  1.00  7.81           N
ATOM      9  CA  THR A   2      13.856  11.469   6.066  1.00  8.31           C
ATOM     10  C   THR A   2      14.164  10.785   7.379  1.00  5.80           C
ATOM     11  O   THR A   2      14.993   9.862   7.443  1.00  6.94           O
ATOM     12  CB  THR A   2      12.732  10.711   5.261  1.00 10.32           C
ATOM     13  OG1 THR A   2      12.484  11.442   4.066  1.00 12.81           O
ATOM     14  CG2 THR A   2      11.410  10.600   6.004  1.00 11.90           C
ATOM     15  N   CYS A   3      13.488  11.241   8.417  1.00  5.24           N
ATOM     16  CA  CYS A   3      13.660  10.707   9.787  1.00  5.39           C
ATOM     17  C   CYS A   3      12.269  10.431  10.323  1.00  4.45           C
ATOM     18  O   CYS A   3      11.393  11.308  10.185  1.00  6.54           O
ATOM     19  CB  CYS A   3      14.368  11.748  10.691  1.00  5.99           C
ATOM     20  SG  CYS A   3      16.009  12.109  10.001  1.00  7.01           S
ATOM     21  N   CYS A   4      12.019   9.272  10.928  1.00  3.90           N
ATOM     22  CA  CYS A   4      10.646   8.991  11.408  1.00  4.24           C
ATOM     23  C   CYS A   4      10.654   8.793  12.919  1.00  4.50           C
ATOM     24  O   CYS A   4      11.659   8.296  13.491  1.00  5.86           O
ATOM     25  CB  CYS A   4      10.057   7.752  10.682  1.00  5.23           C
ATOM     26  SG  CYS A   4      11.003   6.211  10.972  1.00  6.14           S
ATOM     27  N   PRO A   5       9.561   9.108  13.563  1.00  5.24           N
ATOM     28  CA  PRO A   5       9.448   9.034  15.012  1.00  5.02           C
ATOM     29  C   PRO A   5       9.288   7.670  15.606  1.00  5.86           C
ATOM     30  O   PRO A   5       9.490   7.519  16.819  1.00  6.68           O
ATOM     31  CB  PRO A   5       8.230   9.957  15.345  1.00  6.48           C
ATOM     32  CG  PRO A   5       7.338   9.786  14.114  1.00  7.53           C
ATOM     33  CD  PRO A   5       8.366   9.804  12.958  1.00  6.54           C
TER      34      PRO A   5
END
"""

EMBEDDED_STRUCTURES: dict[str, str] = {
    "crambin-n-terminus": CRAMBIN_N_TERMINUS,
}

DEFAULT_STRUCTURE = "crambin-n-terminus"


def embedded_structure(name: str = DEFAULT_STRUCTURE) -> str:
    try:
        return EMBEDDED_STRUCTURES[name]
    except KeyError:
        known = ", ".join(sorted(EMBEDDED_STRUCTURES))
        raise KeyError(f"No embedded structure {name!r}; choose from {known}") from None
