"""Tests for the column mapping tables and the row codec.

Tests cover:
- Fixed column order and header rows
- Per-column fallbacks for missing or malformed cells
- Entity <-> row conversion
"""

from datetime import datetime, timezone

import pytest

from hotspot_sync.base_utils import chunk_list, generate_id, to_base36
from hotspot_sync.models import Hotspot, Project, Slide
from hotspot_sync.row_schema import (
    HOTSPOT_SCHEMA,
    PROJECT_SCHEMA,
    REGISTRY_SCHEMA,
    SLIDE_SCHEMA,
    RowCodec,
)


class TestSchemaTables:
    """Tests for header rows and column lookup."""

    def test_hotspot_headers_in_fixed_order(self):
        """Test the hotspot sheet layout."""
        assert HOTSPOT_SCHEMA.headers() == [
            "ID", "Slide ID", "Name", "Color", "Size", "Position X", "Position Y",
            "Pulse Animation", "Trigger Type", "Event Type", "Tooltip Content",
            "Tooltip Position", "Zoom Level", "Pan Offset X", "Pan Offset Y",
            "Banner Text", "Is Visible", "Order", "Created At", "Updated At",
        ]

    def test_project_and_slide_column_counts(self):
        """Test project and slide rows have ten columns each."""
        assert len(PROJECT_SCHEMA.headers()) == 10
        assert len(SLIDE_SCHEMA.headers()) == 10

    def test_registry_carries_document_id(self):
        """Test the registry row indexes each project's document."""
        assert REGISTRY_SCHEMA.headers()[0] == "Project ID"
        assert REGISTRY_SCHEMA.index_of("document_id") == 3

    def test_index_of_unknown_attribute(self):
        """Test looking up a column that does not exist."""
        with pytest.raises(KeyError):
            HOTSPOT_SCHEMA.index_of("nope")


class TestRowCodec:
    """Tests for entity <-> row conversion."""

    def setup_method(self):
        self.codec = RowCodec()

    def test_encode_hotspot_positions(self):
        """Test encoded cells land in their columns."""
        hotspot = Hotspot(id="h1", slide_id="s1", x=12.5, y=80.0, order=3, is_visible=False)
        row = self.codec.encode(HOTSPOT_SCHEMA, hotspot)

        assert len(row) == 20
        assert row[0] == "h1"
        assert row[1] == "s1"
        assert row[HOTSPOT_SCHEMA.index_of("x")] == 12.5
        assert row[HOTSPOT_SCHEMA.index_of("y")] == 80.0
        assert row[HOTSPOT_SCHEMA.index_of("order")] == 3
        assert row[HOTSPOT_SCHEMA.index_of("is_visible")] is False

    def test_hotspot_survives_conversion(self):
        """Test a hotspot converted to a row and back is unchanged."""
        created = datetime(2026, 3, 1, 12, 30, tzinfo=timezone.utc)
        hotspot = Hotspot(
            id="h1",
            slide_id="s1",
            name="Start",
            event_type="pan_zoom",
            zoom_level=2.5,
            pan_offset_x=-10.0,
            created_at=created,
            updated_at=created,
        )
        row = self.codec.encode(HOTSPOT_SCHEMA, hotspot)
        assert self.codec.to_entity(HOTSPOT_SCHEMA, row) == hotspot

    def test_short_row_uses_column_defaults(self):
        """Test missing trailing cells fall back to the column defaults."""
        hotspot = self.codec.to_entity(HOTSPOT_SCHEMA, ["h1", "s1"])

        assert hotspot.order == 0
        assert hotspot.is_visible is True
        assert hotspot.size == 50
        assert hotspot.color == "#ffffff"
        assert hotspot.event_type == "text_popup"
        assert hotspot.created_at == datetime.fromtimestamp(0, tz=timezone.utc)

    def test_malformed_cells_fall_back(self):
        """Test unparseable numbers, booleans and timestamps."""
        row = ["s1", "p1", "Intro", "", "image", "not-a-number", "", "maybe", "yesterday", ""]
        slide = self.codec.to_entity(SLIDE_SCHEMA, row)

        assert slide.order == 0
        assert slide.duration is None
        assert slide.is_active is True
        assert slide.created_at.year == 1970

    def test_boolean_strings(self):
        """Test row stores that hand back booleans as text."""
        row = self.codec.encode(HOTSPOT_SCHEMA, Hotspot(id="h1", slide_id="s1"))
        row[HOTSPOT_SCHEMA.index_of("is_visible")] = "FALSE"
        row[HOTSPOT_SCHEMA.index_of("pulse_animation")] = "true"

        hotspot = self.codec.to_entity(HOTSPOT_SCHEMA, row)
        assert hotspot.is_visible is False
        assert hotspot.pulse_animation is True

    def test_project_json_cells(self):
        """Test settings and share list are stored as JSON text."""
        project = Project(id="p1", title="Tour", settings={"theme": "dark"}, shared_with=["a@example.com"])
        row = self.codec.encode(PROJECT_SCHEMA, project)

        assert row[PROJECT_SCHEMA.index_of("settings")] == '{"theme": "dark"}'
        assert row[PROJECT_SCHEMA.index_of("shared_with")] == '["a@example.com"]'

        decoded = self.codec.to_entity(PROJECT_SCHEMA, row)
        assert decoded.settings == {"theme": "dark"}
        assert decoded.shared_with == ["a@example.com"]

    def test_broken_json_cell(self):
        """Test a JSON cell that does not parse, or parses to the wrong type."""
        row = self.codec.encode(PROJECT_SCHEMA, Project(id="p1", title="Tour"))
        row[PROJECT_SCHEMA.index_of("settings")] = "{not json"
        row[PROJECT_SCHEMA.index_of("shared_with")] = '{"a": 1}'

        decoded = self.codec.to_entity(PROJECT_SCHEMA, row)
        assert decoded.settings == {}
        assert decoded.shared_with == []

    def test_extra_values_override_decoded(self):
        """Test to_entity merges caller-supplied fields."""
        row = self.codec.encode(PROJECT_SCHEMA, Project(id="p1", title="Tour"))
        project = self.codec.to_entity(PROJECT_SCHEMA, row, document_id="doc-1")
        assert project.document_id == "doc-1"

    def test_slide_optional_duration(self):
        """Test an unset duration is stored empty."""
        row = self.codec.encode(SLIDE_SCHEMA, Slide(id="s1", project_id="p1"))
        assert row[SLIDE_SCHEMA.index_of("duration")] is None
        row[SLIDE_SCHEMA.index_of("duration")] = "4.5"
        assert self.codec.to_entity(SLIDE_SCHEMA, row).duration == 4.5

    def test_text_cells_keep_whitespace(self):
        """Test tooltip and banner text come back exactly as written."""
        hotspot = Hotspot(
            id="h1",
            slide_id="s1",
            tooltip_content="  Click here\nto continue  ",
            banner_text="\tWelcome ",
        )
        decoded = self.codec.to_entity(HOTSPOT_SCHEMA, self.codec.encode(HOTSPOT_SCHEMA, hotspot))

        assert decoded.tooltip_content == "  Click here\nto continue  "
        assert decoded.banner_text == "\tWelcome "

    def test_id_cells_are_trimmed(self):
        """Test ids typed into the row store with stray spaces still resolve."""
        row = self.codec.encode(HOTSPOT_SCHEMA, Hotspot(id="h1", slide_id="s1"))
        row[0] = " h1 "
        row[1] = "s1\n"

        hotspot = self.codec.to_entity(HOTSPOT_SCHEMA, row)
        assert (hotspot.id, hotspot.slide_id) == ("h1", "s1")


class TestIds:
    """Tests for id generation and chunking helpers."""

    def test_base36(self):
        """Test base-36 conversion."""
        assert to_base36(0) == "0"
        assert to_base36(35) == "z"
        assert to_base36(36) == "10"

    def test_generate_id_shape(self):
        """Test prefix_timestamp_random layout."""
        prefix, stamp, rand = generate_id("hotspot").split("_")
        assert prefix == "hotspot"
        assert int(stamp, 36) > 0
        assert len(rand) == 6

    def test_chunk_list(self):
        """Test splitting into fixed-size chunks."""
        assert chunk_list(list(range(5)), 2) == [[0, 1], [2, 3], [4]]
        assert chunk_list([], 100) == []
        with pytest.raises(ValueError):
            chunk_list([1], 0)
