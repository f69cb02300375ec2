"""Tests for BioRenderer and the RCSB structure client."""

from unittest.mock import Mock

import pytest
import requests

from vizchat.errors import StructureLookupError
from vizchat.render.bio import (
    DEFAULT_RESIDUE,
    NEGATIVE,
    NO_SEQUENCE,
    PDB_LOAD_FAILED,
    BioRenderer,
    RcsbStructureClient,
    residue_color,
    summarize_entry,
)
from vizchat.render.context import RenderContext, Theme

ENTRY = {
    "struct": {"title": "Crystal structure of human hemoglobin"},
    "exptl": [{"method": "X-RAY DIFFRACTION"}],
    "rcsb_entry_info": {
        "resolution_combined": [1.74],
        "deposited_polymer_entity_instance_count": 4,
        "deposited_polymer_monomer_count": 574,
        "molecular_weight": 64.74,
    },
    "rcsb_accession_info": {"initial_release_date": "1984-03-07T00:00:00+0000"},
}


class FakeStructureClient:

    def __init__(self, entry=None, error=None):
        self.entry = entry
        self.error = error
        self.requested = []

    def fetch_entry(self, pdb_id):
        self.requested.append(pdb_id)
        if self.error:
            raise self.error
        return self.entry


def bio_context(client):
    return RenderContext(theme=Theme(dark=True), structure_client=client, width=96)


class TestSequence:

    def test_sequence_lines_are_numbered(self, context, render_text):
        payload = {"type": "sequence", "data": {"sequence": "MVLS" * 20}}

        output = render_text(BioRenderer(context).render(payload))

        assert "Sequence (80 aa)" in output
        assert "    1 MVLS" in output
        assert "   51 " in output
        assert "Non-polar" in output

    def test_highlights_listed(self, context, render_text):
        payload = {
            "type": "sequence",
            "title": "Insulin B chain",
            "data": {
                "sequence": "FVNQHLCGSHLVEALYLVCGERGFFYTPKT",
                "highlights": [{"start": 7, "end": 7, "label": "Cys7"}, {"start": "bad"}],
            },
        }

        output = render_text(BioRenderer(context).render(payload))

        assert "Insulin B chain" in output
        assert "7-7 Cys7" in output

    def test_empty_sequence(self, context, render_text):
        output = render_text(BioRenderer(context).render({"type": "sequence", "data": {"sequence": " "}}))

        assert NO_SEQUENCE in output

    def test_residue_colors(self):
        assert residue_color("d") == NEGATIVE
        assert residue_color("X") == DEFAULT_RESIDUE


class TestStructure:

    def test_entry_card(self, render_text):
        client = FakeStructureClient(entry=ENTRY)
        payload = {"type": "pdb", "data": {"pdbId": "4hhb", "name": "Hemoglobin"}}

        output = render_text(BioRenderer(bio_context(client)).render(payload))

        assert client.requested == ["4hhb"]
        assert "Hemoglobin" in output
        assert "4HHB" in output
        assert "X-RAY DIFFRACTION" in output
        assert "1.74 Å" in output
        assert "https://www.rcsb.org/structure/4HHB" in output

    def test_lookup_failure_is_scoped(self, render_text):
        client = FakeStructureClient(error=StructureLookupError("Invalid PDB id: 'zz'"))
        payload = {"type": "pdb", "data": {"pdbId": "zz"}}

        output = render_text(BioRenderer(bio_context(client)).render(payload))

        assert PDB_LOAD_FAILED in output
        assert "Invalid PDB id" in output

    def test_unsupported_type(self, context, render_text):
        output = render_text(BioRenderer(context).render({"type": "alignment"}))

        assert "Unsupported bio type: 'alignment'" in output

    def test_summarize_entry_tolerates_missing_fields(self):
        summary = summarize_entry({})

        assert summary["title"] is None
        assert summary["resolution"] is None
        assert summary["method"] is None


class TestRcsbStructureClient:

    def test_fetch_entry(self):
        session = Mock()
        session.get.return_value = Mock(status_code=200, json=Mock(return_value=ENTRY))

        entry = RcsbStructureClient(session=session).fetch_entry(" 4hhb ")

        assert entry is ENTRY
        url = session.get.call_args[0][0]
        assert url.endswith("/entry/4HHB")

    @pytest.mark.parametrize("pdb_id", ["", "hhb", "ABCD", "4hhb1"])
    def test_invalid_id_is_rejected_without_request(self, pdb_id):
        session = Mock()

        with pytest.raises(StructureLookupError, match="Invalid PDB id"):
            RcsbStructureClient(session=session).fetch_entry(pdb_id)
        session.get.assert_not_called()

    def test_http_error(self):
        session = Mock()
        session.get.return_value = Mock(status_code=404)

        with pytest.raises(StructureLookupError, match="HTTP 404"):
            RcsbStructureClient(session=session).fetch_entry("9zzz")

    def test_network_error(self):
        session = Mock()
        session.get.side_effect = requests.exceptions.ConnectionError("down")

        with pytest.raises(StructureLookupError, match="Cannot reach RCSB"):
            RcsbStructureClient(session=session).fetch_entry("1abc")

    def test_malformed_json(self):
        session = Mock()
        session.get.return_value = Mock(status_code=200, json=Mock(side_effect=ValueError("bad")))

        with pytest.raises(StructureLookupError, match="Malformed"):
            RcsbStructureClient(session=session).fetch_entry("1abc")
