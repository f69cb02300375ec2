"""
Biological data renderer.

Handles two payload types:
- sequence: one-letter amino-acid codes coloured by side-chain chemistry,
  with 1-based highlight ranges
- pdb: a Protein Data Bank entry looked up through a BioStructureClient and
  shown as a metadata card (the terminal has no 3-D viewer)

Learning Points:
- requests.Session keeps one pooled connection for repeated lookups
- Lookup failures become a scoped error panel, never a crash
"""

import logging
import re
from typing import List, Optional

import requests
from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..errors import StructureLookupError
from .context import RenderContext, plain

logger = logging.getLogger(__name__)

RCSB_ENTRY_URL = "https://data.rcsb.org/rest/v1/core/entry/{pdb_id}"
PDB_ID_RE = re.compile(r"^[0-9][A-Za-z0-9]{3}$")

PDB_LOAD_FAILED = "Failed to load PDB structure"
NO_SEQUENCE = "No sequence data"

# Amino-acid colours by chemistry class
NON_POLAR = "#94a3b8"
POLAR = "#10b981"
POSITIVE = "#3b82f6"
NEGATIVE = "#ef4444"
DEFAULT_RESIDUE = "#cbd5e1"

RESIDUE_CLASSES = (
    ("Non-polar", NON_POLAR, "AVLIPFWM"),
    ("Polar", POLAR, "GSTCYNQ"),
    ("Positive", POSITIVE, "KRH"),
    ("Negative", NEGATIVE, "DE"),
)

AMINO_ACID_COLORS = {
    residue: color
    for _, color, residues in RESIDUE_CLASSES
    for residue in residues
}

RESIDUES_PER_LINE = 50


def residue_color(residue: str) -> str:
    return AMINO_ACID_COLORS.get(residue.upper(), DEFAULT_RESIDUE)


class RcsbStructureClient:
    """BioStructureClient backed by the RCSB PDB data API."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 10.0):
        self.session = session or requests.Session()
        self.timeout = timeout

    def fetch_entry(self, pdb_id: str) -> dict:
        """Entry metadata for a 4-character PDB id.

        Raises:
            StructureLookupError: invalid id, HTTP error or unreadable response
        """
        pdb_id = (pdb_id or "").strip()
        if not PDB_ID_RE.match(pdb_id):
            raise StructureLookupError(f"Invalid PDB id: {pdb_id!r}")

        url = RCSB_ENTRY_URL.format(pdb_id=pdb_id.upper())
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise StructureLookupError(f"Cannot reach RCSB: {e}") from e

        if response.status_code != 200:
            raise StructureLookupError(f"RCSB returned HTTP {response.status_code} for {pdb_id}")
        try:
            return response.json()
        except ValueError as e:
            raise StructureLookupError(f"Malformed RCSB response for {pdb_id}") from e


def summarize_entry(entry: dict) -> dict:
    """Pick the display fields out of an RCSB entry document."""
    info = entry.get("rcsb_entry_info") or {}
    exptl = entry.get("exptl") or [{}]
    resolution = info.get("resolution_combined") or []
    return {
        "title": (entry.get("struct") or {}).get("title"),
        "method": exptl[0].get("method") if exptl else None,
        "resolution": resolution[0] if resolution else None,
        "chains": info.get("deposited_polymer_entity_instance_count"),
        "residues": info.get("deposited_polymer_monomer_count"),
        "weight": info.get("molecular_weight"),
        "released": (entry.get("rcsb_accession_info") or {}).get("initial_release_date"),
    }


class BioRenderer:

    def __init__(self, context: RenderContext):
        self.context = context

    def render(self, payload: dict) -> RenderableType:
        kind = payload.get("type")
        data = payload.get("data") or {}
        title = payload.get("title")

        if kind == "sequence":
            return self.render_sequence(str(data.get("sequence") or ""), data.get("highlights") or [], title)
        if kind == "pdb":
            return self.render_structure(str(data.get("pdbId") or ""), data.get("name"), title)
        return Panel(Text(f"Unsupported bio type: {kind!r}", style="red"), border_style="red")

    # ========================================================================
    # Sequence view
    # ========================================================================

    def render_sequence(self, sequence: str, highlights: List[dict], title: Optional[str]) -> RenderableType:
        muted = self.context.theme.muted
        sequence = "".join(sequence.split())
        if not sequence:
            return Panel(Text(NO_SEQUENCE, style=muted), title=plain(title), border_style=muted)

        ranges = []
        for h in highlights:
            try:
                ranges.append((int(h.get("start")), int(h.get("end")), str(h.get("label") or "")))
            except (TypeError, ValueError, AttributeError):
                logger.debug("Skipping malformed highlight %r", h)

        body = Text()
        for start in range(0, len(sequence), RESIDUES_PER_LINE):
            body.append(f"{start + 1:>5} ", style=muted)
            for offset, residue in enumerate(sequence[start:start + RESIDUES_PER_LINE]):
                position = start + offset + 1
                style = f"bold {residue_color(residue)}"
                if any(lo <= position <= hi for lo, hi, _ in ranges):
                    style += " reverse underline"
                body.append(residue, style=style)
            body.append("\n")

        legend = Text()
        for name, color, _ in RESIDUE_CLASSES:
            legend.append("■ ", style=color)
            legend.append(f"{name}  ", style=muted)

        parts = [body, legend]
        if ranges:
            marks = Text()
            for lo, hi, label in ranges:
                marks.append(f"\n▌ {lo}-{hi}", style="reverse")
                if label:
                    marks.append(f" {label}")
            parts.append(marks)

        return Panel(Group(*parts), title=plain(title or f"Sequence ({len(sequence)} aa)"), border_style=muted)

    # ========================================================================
    # Structure card
    # ========================================================================

    def render_structure(self, pdb_id: str, name: Optional[str], title: Optional[str]) -> RenderableType:
        client = self.context.structure_client
        if client is None:
            client = RcsbStructureClient()

        try:
            entry = client.fetch_entry(pdb_id)
        except StructureLookupError as e:
            logger.warning("PDB lookup failed for %r: %s", pdb_id, e)
            body = Text(PDB_LOAD_FAILED, style="bold red")
            body.append(f"\n{e}", style="red")
            return Panel(body, title=plain(title or pdb_id), border_style="red")

        summary = summarize_entry(entry)
        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("field", style=self.context.theme.muted, no_wrap=True)
        table.add_column("value")

        table.add_row("PDB ID", plain(pdb_id.upper()))
        if name:
            table.add_row("Name", plain(name))
        rows = (
            ("Title", summary["title"]),
            ("Method", summary["method"]),
            ("Resolution", f"{summary['resolution']} Å" if summary["resolution"] is not None else None),
            ("Chains", summary["chains"]),
            ("Residues", summary["residues"]),
            ("Weight", f"{summary['weight']} kDa" if summary["weight"] is not None else None),
            ("Released", summary["released"]),
        )
        for label, value in rows:
            if value is not None:
                table.add_row(label, plain(value))

        link = Text(f"https://www.rcsb.org/structure/{pdb_id.upper()}", style="underline dim")
        return Panel(Group(table, link), title=plain(title or name or pdb_id.upper()),
                     border_style=self.context.theme.accent)
