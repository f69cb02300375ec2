"""Tests for MoleculeRenderer and the Braille canvas it draws on."""

from vizchat.render.canvas import BRAILLE_BASE, BrailleCanvas
from vizchat.render.molecule import INVALID, MoleculeRenderer, atom_label, layout_molecule
from vizchat.render.smiles import parse_smiles


class TestMoleculeRenderer:

    def test_valid_smiles_shows_name_and_formula(self, context, render_text):
        output = render_text(MoleculeRenderer(context).render({"smiles": "CCO", "name": "Ethanol"}))

        assert "Ethanol" in output
        assert "C2H6O" in output
        assert "3 atoms" in output
        assert "CCO" in output

    def test_heteroatom_labels_drawn(self, context, render_text):
        output = render_text(MoleculeRenderer(context).render({"smiles": "CC(=O)O"}))

        assert "OH" in output
        assert "Molecule" in output

    def test_invalid_smiles_shows_error_with_caret(self, context, render_text):
        output = render_text(MoleculeRenderer(context).render({"smiles": "C1CC", "name": "Broken"}))

        assert INVALID in output
        assert "Unclosed ring 1" in output
        assert " ^" in output

    def test_missing_smiles_is_invalid(self, context, render_text):
        output = render_text(MoleculeRenderer(context).render({}))

        assert INVALID in output
        assert "Empty SMILES string" in output


class TestLayout:

    def test_every_atom_is_placed(self):
        molecule = parse_smiles("CC(C)(C)C.O")

        positions = layout_molecule(molecule)

        assert len(positions) == len(molecule.atoms)
        assert len(set(positions)) == len(positions)

    def test_fragments_are_side_by_side(self):
        molecule = parse_smiles("C.C")

        (x0, _), (x1, _) = layout_molecule(molecule)

        assert x1 > x0

    def test_atom_labels(self):
        molecule = parse_smiles("C[NH3+]")

        assert atom_label(molecule.atoms[0]) == ""
        assert atom_label(molecule.atoms[1]) == "NH3+"


class TestBrailleCanvas:

    def test_blank_canvas(self):
        canvas = BrailleCanvas(4, 2)

        assert canvas.is_blank()
        assert canvas.render().plain == "    \n    "

    def test_point_sets_dot(self):
        canvas = BrailleCanvas(1, 1)

        canvas.point(0, 0)

        assert canvas.render().plain == chr(BRAILLE_BASE + 0x01)

    def test_virtual_coordinates_scale(self):
        canvas = BrailleCanvas(10, 5, virtual_width=100, virtual_height=100)

        assert canvas.to_cell(99, 99) == (9, 4)
        assert canvas.to_cell(0, 0) == (0, 0)

    def test_out_of_range_is_clipped(self):
        canvas = BrailleCanvas(2, 2)

        canvas.point(-5, 100)

        assert canvas.is_blank()

    def test_text_overwrites_cells(self):
        canvas = BrailleCanvas(6, 1)
        canvas.line(0, 0, 11, 0)

        canvas.text(0, 0, "ab", align="left")

        assert canvas.render().plain.startswith("ab")
