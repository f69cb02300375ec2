"""
Minimal SMILES parser.

Supports the organic subset (B C N O P S F Cl Br I and aromatic b c n o p s),
bracket atoms with isotope, chirality, hydrogen count and charge, bond
symbols, branches, ring closures (digits and %nn) and disconnected
fragments. Stereo bonds are read as single bonds.

The result is a molecular graph with implicit hydrogens filled in for
organic-subset atoms, which is enough to report a molecular formula and lay
the structure out on a character canvas.
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..errors import SmilesError

ELEMENTS = set("""
H He Li Be B C N O F Ne Na Mg Al Si P S Cl Ar K Ca Sc Ti V Cr Mn Fe Co Ni Cu Zn
Ga Ge As Se Br Kr Rb Sr Y Zr Nb Mo Tc Ru Rh Pd Ag Cd In Sn Sb Te I Xe Cs Ba La Ce
Pr Nd Pm Sm Eu Gd Tb Dy Ho Er Tm Yb Lu Hf Ta W Re Os Ir Pt Au Hg Tl Pb Bi Po At Rn
Fr Ra Ac Th Pa U Np Pu Am Cm Bk Cf Es Fm Md No Lr Rf Db Sg Bh Hs Mt Ds Rg Cn Nh Fl
Mc Lv Ts Og
""".split())

# Allowed valences of the organic subset, lowest first
VALENCES: Dict[str, Tuple[int, ...]] = {
    "B": (3,), "C": (4,), "N": (3, 5), "O": (2,), "P": (3, 5), "S": (2, 4, 6),
    "F": (1,), "Cl": (1,), "Br": (1,), "I": (1,),
}

AROMATIC_ORGANIC = ("b", "c", "n", "o", "p", "s")
AROMATIC_BRACKET = ("se", "as") + AROMATIC_ORGANIC

BOND_ORDERS = {"-": 1.0, "=": 2.0, "#": 3.0, "$": 4.0, ":": 1.5, "/": 1.0, "\\": 1.0}

_BRACKET_RE = re.compile(
    r"\[(?P<isotope>\d+)?"
    r"(?P<symbol>se|as|[bcnops]|[A-Z][a-z]?|\*)"
    r"(?P<chiral>@{1,2})?"
    r"(?P<hcount>H\d*)?"
    r"(?P<charge>\+\+|--|[+-]\d*)?"
    r"(?::(?P<atom_class>\d+))?\]"
)


@dataclass
class Atom:
    symbol: str
    aromatic: bool = False
    charge: int = 0
    isotope: Optional[int] = None
    # Hydrogens written inside brackets; None for organic-subset atoms
    explicit_h: Optional[int] = None
    implicit_h: int = 0
    position: int = 0

    @property
    def element(self) -> str:
        return self.symbol.capitalize() if self.aromatic else self.symbol

    @property
    def hydrogens(self) -> int:
        return self.explicit_h if self.explicit_h is not None else self.implicit_h


@dataclass
class Bond:
    a: int
    b: int
    order: float = 1.0

    @property
    def aromatic(self) -> bool:
        return self.order == 1.5


@dataclass
class Molecule:
    smiles: str
    atoms: List[Atom] = field(default_factory=list)
    bonds: List[Bond] = field(default_factory=list)
    ring_closures: int = 0
    fragments: int = 0

    def neighbors(self, index: int) -> List[int]:
        out = []
        for bond in self.bonds:
            if bond.a == index:
                out.append(bond.b)
            elif bond.b == index:
                out.append(bond.a)
        return out

    def element_counts(self) -> Counter:
        counts: Counter = Counter()
        for atom in self.atoms:
            if atom.symbol != "*":
                counts[atom.element] += 1
            if atom.hydrogens:
                counts["H"] += atom.hydrogens
        return counts

    def formula(self) -> str:
        """Molecular formula in Hill order."""
        counts = self.element_counts()
        if "C" in counts:
            order = ["C"] + (["H"] if "H" in counts else [])
            order += sorted(e for e in counts if e not in ("C", "H"))
        else:
            order = sorted(counts)
        formula = "".join(e + (str(counts[e]) if counts[e] > 1 else "") for e in order)

        charge = sum(atom.charge for atom in self.atoms)
        if charge:
            sign = "+" if charge > 0 else "-"
            formula += (str(abs(charge)) if abs(charge) > 1 else "") + sign
        return formula


def _parse_charge(text: Optional[str]) -> int:
    if not text:
        return 0
    if text in ("++", "--"):
        return 2 if text == "++" else -2
    sign = 1 if text[0] == "+" else -1
    return sign * (int(text[1:]) if len(text) > 1 else 1)


def _fill_implicit_hydrogens(molecule: Molecule) -> None:
    for index, atom in enumerate(molecule.atoms):
        if atom.explicit_h is not None or atom.element not in VALENCES:
            continue
        used = 0.0
        for bond in molecule.bonds:
            if index in (bond.a, bond.b):
                used += 1.0 if bond.aromatic else bond.order
        if atom.aromatic:
            used += 1
        used_int = int(round(used))
        candidates = [v for v in VALENCES[atom.element] if v >= used_int]
        atom.implicit_h = candidates[0] - used_int if candidates else 0


def parse_smiles(smiles: str) -> Molecule:
    """Parse a SMILES string into a Molecule.

    Raises:
        SmilesError: on any syntax problem, with the offending position
    """
    text = (smiles or "").strip()
    if not text:
        raise SmilesError("Empty SMILES string", 0)

    molecule = Molecule(smiles=text, fragments=1)
    branches: List[int] = []
    rings: Dict[int, Tuple[int, Optional[str], int]] = {}
    prev: Optional[int] = None
    bond: Optional[str] = None
    pos = 0

    def add_atom(atom: Atom) -> None:
        nonlocal prev, bond
        molecule.atoms.append(atom)
        index = len(molecule.atoms) - 1
        if prev is not None:
            molecule.bonds.append(Bond(prev, index, _bond_order(bond, molecule.atoms[prev], atom)))
        prev, bond = index, None

    while pos < len(text):
        ch = text[pos]

        if ch == "(":
            if prev is None:
                raise SmilesError("Branch opened before any atom", pos)
            branches.append(prev)
            pos += 1
        elif ch == ")":
            if not branches:
                raise SmilesError("Unbalanced parenthesis", pos)
            if bond is not None:
                raise SmilesError("Bond symbol without a following atom", pos)
            prev = branches.pop()
            pos += 1
        elif ch in BOND_ORDERS:
            if prev is None or bond is not None:
                raise SmilesError(f"Unexpected bond symbol '{ch}'", pos)
            bond = ch
            pos += 1
        elif ch == ".":
            if bond is not None or prev is None:
                raise SmilesError("Unexpected fragment separator", pos)
            prev = None
            molecule.fragments += 1
            pos += 1
        elif ch.isdigit() or ch == "%":
            if prev is None:
                raise SmilesError("Ring closure before any atom", pos)
            if ch == "%":
                label_text = text[pos + 1:pos + 3]
                if len(label_text) != 2 or not label_text.isdigit():
                    raise SmilesError("Malformed %nn ring closure", pos)
                label, width = int(label_text), 3
            else:
                label, width = int(ch), 1

            if label in rings:
                other, other_bond, _ = rings.pop(label)
                if other == prev:
                    raise SmilesError("Ring closure to the same atom", pos)
                symbol = bond or other_bond
                molecule.bonds.append(
                    Bond(other, prev, _bond_order(symbol, molecule.atoms[other], molecule.atoms[prev]))
                )
                molecule.ring_closures += 1
            else:
                rings[label] = (prev, bond, pos)
            bond = None
            pos += width
        elif ch == "[":
            match = _BRACKET_RE.match(text, pos)
            if not match:
                raise SmilesError("Malformed bracket atom", pos)
            symbol = match.group("symbol")
            aromatic = symbol in AROMATIC_BRACKET
            if not aromatic and symbol != "*" and symbol not in ELEMENTS:
                raise SmilesError(f"Unknown element '{symbol}'", pos)
            hcount = match.group("hcount")
            add_atom(Atom(
                symbol=symbol,
                aromatic=aromatic,
                charge=_parse_charge(match.group("charge")),
                isotope=int(match.group("isotope")) if match.group("isotope") else None,
                explicit_h=(int(hcount[1:]) if len(hcount) > 1 else 1) if hcount else 0,
                position=pos,
            ))
            pos = match.end()
        else:
            two = text[pos:pos + 2]
            if two in ("Cl", "Br"):
                add_atom(Atom(symbol=two, position=pos))
                pos += 2
            elif ch in "BCNOPSFI":
                add_atom(Atom(symbol=ch, position=pos))
                pos += 1
            elif ch in AROMATIC_ORGANIC:
                add_atom(Atom(symbol=ch, aromatic=True, position=pos))
                pos += 1
            elif ch == "*":
                add_atom(Atom(symbol="*", explicit_h=0, position=pos))
                pos += 1
            else:
                raise SmilesError(f"Invalid character '{ch}'", pos)

    if branches:
        raise SmilesError("Unbalanced parenthesis", len(text))
    if rings:
        label, (_, _, at) = next(iter(rings.items()))
        raise SmilesError(f"Unclosed ring {label}", at)
    if bond is not None:
        raise SmilesError("Dangling bond at end of string", len(text) - 1)

    _fill_implicit_hydrogens(molecule)
    return molecule


def _bond_order(symbol: Optional[str], a: Atom, b: Atom) -> float:
    if symbol is not None:
        return BOND_ORDERS[symbol]
    return 1.5 if a.aromatic and b.aromatic else 1.0
