"""Molecule renderer: SMILES -> formula card and 2-D skeletal sketch."""

import logging
import math
from collections import deque
from typing import Dict, List, Tuple

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.text import Text

from ..errors import SmilesError
from .canvas import BrailleCanvas
from .context import RenderContext, plain
from .smiles import Molecule, parse_smiles

logger = logging.getLogger(__name__)

INVALID = "Invalid SMILES Code"

ELEMENT_STYLES = {
    "O": "bold red",
    "N": "bold blue",
    "S": "bold yellow",
    "P": "bold dark_orange",
    "F": "bold green",
    "Cl": "bold green",
    "Br": "bold dark_red",
    "I": "bold magenta",
}

BOND_LENGTH = 1.0


def layout_molecule(molecule: Molecule) -> List[Tuple[float, float]]:
    """Breadth-first placement of atoms in abstract 2-D coordinates.

    Chains zig-zag at 120 degrees and branches fan out around the incoming
    direction. Ring-closure bonds are drawn between wherever their atoms land.
    Disconnected fragments are placed side by side.
    """
    positions: Dict[int, Tuple[float, float]] = {}
    headings: Dict[int, float] = {}
    offset_x = 0.0

    for root in range(len(molecule.atoms)):
        if root in positions:
            continue
        positions[root] = (offset_x, 0.0)
        headings[root] = 0.0
        fragment = [root]
        queue = deque([root])
        flip = 1

        while queue:
            current = queue.popleft()
            children = [n for n in molecule.neighbors(current) if n not in positions]
            if not children:
                continue
            base = headings[current]
            if len(children) == 1:
                angles = [base + flip * math.pi / 6]
                flip = -flip
            else:
                spread = 2 * math.pi / 3
                step = spread / (len(children) - 1)
                angles = [base - spread / 2 + i * step for i in range(len(children))]

            cx, cy = positions[current]
            for child, angle in zip(children, angles):
                positions[child] = (cx + BOND_LENGTH * math.cos(angle), cy + BOND_LENGTH * math.sin(angle))
                headings[child] = angle
                fragment.append(child)
                queue.append(child)

        offset_x = max(positions[i][0] for i in fragment) + 2 * BOND_LENGTH

    return [positions[i] for i in range(len(molecule.atoms))]


def atom_label(atom) -> str:
    if atom.element == "C" and not atom.charge and atom.isotope is None:
        return ""
    label = atom.element
    if atom.hydrogens:
        label += "H" + (str(atom.hydrogens) if atom.hydrogens > 1 else "")
    if atom.charge:
        label += "+" if atom.charge > 0 else "-"
    return label


class MoleculeRenderer:

    def __init__(self, context: RenderContext):
        self.context = context

    def render(self, payload: dict) -> RenderableType:
        smiles = str(payload.get("smiles") or "")
        name = payload.get("name") or payload.get("text") or None

        try:
            molecule = parse_smiles(smiles)
        except SmilesError as e:
            logger.debug("Invalid SMILES %r: %s", smiles, e)
            return self._error(smiles, e)

        summary = Text()
        summary.append(molecule.formula(), style="bold")
        summary.append(
            f"  {len(molecule.atoms)} atoms · {len(molecule.bonds)} bonds · "
            f"{molecule.ring_closures} rings",
            style=self.context.theme.muted,
        )
        code = Text(smiles, style="dim")

        return Panel(
            Group(self._sketch(molecule), summary, code),
            title=plain(name or "Molecule"),
            border_style=self.context.theme.muted,
        )

    def _error(self, smiles: str, error: SmilesError) -> RenderableType:
        body = Text(INVALID, style="bold red")
        body.append(f"\n{error}", style="red")
        if smiles:
            body.append(f"\n{smiles}", style="dim")
            if error.position >= 0:
                body.append("\n" + " " * min(error.position, len(smiles)) + "^", style="red")
        return Panel(body, border_style="red")

    def _sketch(self, molecule: Molecule) -> BrailleCanvas:
        cols = max(20, min(self.context.width - 4, 64))
        rows = 12
        canvas = BrailleCanvas(cols, rows)
        positions = layout_molecule(molecule)

        xs = [p[0] for p in positions]
        ys = [p[1] for p in positions]
        span_x = (max(xs) - min(xs)) or 1.0
        span_y = (max(ys) - min(ys)) or 1.0
        margin = 6
        scale = min((canvas.pixel_width - 2 * margin) / span_x, (canvas.pixel_height - 2 * margin) / span_y)
        center_x = canvas.pixel_width / 2
        center_y = canvas.pixel_height / 2
        mid_x = (max(xs) + min(xs)) / 2
        mid_y = (max(ys) + min(ys)) / 2
        points = [
            (center_x + (x - mid_x) * scale, center_y + (y - mid_y) * scale)
            for x, y in positions
        ]

        bond_style = self.context.theme.foreground
        for bond in molecule.bonds:
            (x0, y0), (x1, y1) = points[bond.a], points[bond.b]
            canvas.line(x0, y0, x1, y1, bond_style)
            if bond.order >= 2:
                dx, dy = x1 - x0, y1 - y0
                length = math.hypot(dx, dy) or 1.0
                ox, oy = -dy / length * 2, dx / length * 2
                canvas.line(x0 + ox, y0 + oy, x1 + ox, y1 + oy, bond_style)
                if bond.order >= 3:
                    canvas.line(x0 - ox, y0 - oy, x1 - ox, y1 - oy, bond_style)

        for atom, (x, y) in zip(molecule.atoms, points):
            label = atom_label(atom)
            if label:
                canvas.text(x, y, label, ELEMENT_STYLES.get(atom.element, "bold"))
        return canvas
