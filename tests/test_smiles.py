"""Tests for the SMILES parser."""

import pytest

from vizchat.errors import SmilesError
from vizchat.render.smiles import parse_smiles


class TestParseSmiles:

    @pytest.mark.parametrize("smiles,formula", [
        ("CCO", "C2H6O"),
        ("c1ccccc1", "C6H6"),
        ("CC(=O)O", "C2H4O2"),
        ("C#N", "CHN"),
        ("ClC(Cl)Cl", "CHCl3"),
        ("[NH4+]", "H4N+"),
        ("O=C=O", "CO2"),
    ])
    def test_formula(self, smiles, formula):
        assert parse_smiles(smiles).formula() == formula

    def test_ring_closure_counted(self):
        molecule = parse_smiles("C1CCCCC1")

        assert molecule.ring_closures == 1
        assert len(molecule.bonds) == 6
        assert molecule.formula() == "C6H12"

    def test_percent_ring_label(self):
        molecule = parse_smiles("C%10CCC%10")

        assert molecule.ring_closures == 1
        assert molecule.formula() == "C4H8"

    def test_fragments(self):
        molecule = parse_smiles("[Na+].[Cl-]")

        assert molecule.fragments == 2
        assert molecule.bonds == []
        assert molecule.formula() == "ClNa"

    def test_aromatic_bonds(self):
        molecule = parse_smiles("c1ccccc1")

        assert all(bond.aromatic for bond in molecule.bonds)

    def test_bracket_isotope_and_charge(self):
        atom = parse_smiles("[13CH4]").atoms[0]

        assert atom.isotope == 13
        assert atom.hydrogens == 4
        assert atom.charge == 0

    def test_surrounding_whitespace_ignored(self):
        assert parse_smiles("  CCO \n").smiles == "CCO"


class TestSmilesErrors:

    @pytest.mark.parametrize("smiles,message,position", [
        ("", "Empty SMILES string", 0),
        ("(C)", "Branch opened before any atom", 0),
        ("C)", "Unbalanced parenthesis", 1),
        ("C(C", "Unbalanced parenthesis", 3),
        ("C(C=)", "Bond symbol without a following atom", 4),
        ("C==C", "Unexpected bond symbol '='", 2),
        (".C", "Unexpected fragment separator", 0),
        ("1CC", "Ring closure before any atom", 0),
        ("C%1C", "Malformed %nn ring closure", 1),
        ("C11", "Ring closure to the same atom", 2),
        ("C[", "Malformed bracket atom", 1),
        ("[Xx]", "Unknown element 'Xx'", 0),
        ("CQ", "Invalid character 'Q'", 1),
        ("C1CC", "Unclosed ring 1", 1),
        ("CC=", "Dangling bond at end of string", 2),
    ])
    def test_error_message_and_position(self, smiles, message, position):
        with pytest.raises(SmilesError) as excinfo:
            parse_smiles(smiles)

        assert str(excinfo.value) == message
        assert excinfo.value.position == position

    def test_none_is_empty(self):
        with pytest.raises(SmilesError, match="Empty"):
            parse_smiles(None)
