"""
Tests for JSON Extraction

Tests for filmflow/extraction/json_extractor.py
"""

import pytest

from filmflow.core.exceptions import ExtractionFailure
from filmflow.extraction.json_extractor import (
    Expect,
    close_truncated_array,
    extract_list,
    extract_structured,
    repair_json,
    strip_code_fences,
    trim_to_json_span,
)


class TestCleanupHelpers:
    """Tests for the individual cleanup steps."""

    def test_strip_code_fences(self):
        """Test fence markers are removed, contents kept."""
        assert strip_code_fences('```json\n{"a": 1}\n```').strip() == '{"a": 1}'

    def test_trim_to_json_span(self):
        """Test chatter before and after the value is cut."""
        text = 'Here you go: {"a": {"b": 2}} Hope this helps!'

        assert trim_to_json_span(text) == '{"a": {"b": 2}}'

    def test_trim_ignores_brackets_in_strings(self):
        """Test brackets inside string literals do not end the span."""
        text = 'Result: {"note": "use } carefully"} done'

        assert trim_to_json_span(text) == '{"note": "use } carefully"}'

    def test_repair_trailing_commas_and_bare_keys(self):
        """Test trailing commas go and bare keys get quoted."""
        assert repair_json('{name: "A", tags: ["x", "y",],}') == '{"name": "A", "tags": ["x", "y"]}'

    def test_repair_leaves_strings_alone(self):
        """Test repairs never touch string contents."""
        assert repair_json('{"text": "a, }"}') == '{"text": "a, }"}'

    def test_close_truncated_array(self):
        """Test only complete top-level elements survive, brackets in strings ignored."""
        assert close_truncated_array('[{"a": "x]"}, {"b": [1, 2]}, {"c": ') == '[{"a": "x]"}, {"b": [1, 2]}]'

    @pytest.mark.parametrize("text", [
        '[{"a": 1}]',
        '{"a": [1, 2',
        '[{"a": ',
    ])
    def test_close_truncated_array_declines(self, text):
        """Test inputs without a completed element of a cut-off array are left alone."""
        assert close_truncated_array(text) is None


class TestExtractStructured:
    """Tests for extract_structured."""

    def test_fenced_object_with_trailing_comma(self):
        """Test a fenced object with a trailing comma parses."""
        text = 'Sure!\n```json\n{"scenes": [{"location": "INT. BAR",}],}\n```'

        assert extract_structured(text, Expect.OBJECT) == {"scenes": [{"location": "INT. BAR"}]}

    def test_single_object_normalized_to_array(self):
        """Test a lone object is wrapped when an array is expected."""
        assert extract_structured('{"characterName": "A"}', Expect.ARRAY) == [{"characterName": "A"}]

    def test_array_passes_through(self):
        """Test an array is returned as-is."""
        assert extract_structured('[{"a": 1}, {"a": 2}]', Expect.ARRAY) == [{"a": 1}, {"a": 2}]

    def test_wrong_shape_rejected(self):
        """Test an array is not accepted where an object is required."""
        with pytest.raises(ExtractionFailure):
            extract_structured("[1, 2]", Expect.OBJECT)

    def test_scan_recovers_flat_objects(self):
        """Test the last-resort scan finds objects carrying the required field."""
        text = (
            '[{"sceneBreakdownId": "scene_1", "brandabilityScore": 80}, '
            '{"sceneBreakdownId": "scene_2", "brandabilityScore": 60}, '
            '{"sceneBreakdownId": "scene_3", "brandabilityScore":'
        )

        result = extract_structured(text, Expect.ARRAY, required_field="sceneBreakdownId")

        assert [item["sceneBreakdownId"] for item in result] == ["scene_1", "scene_2"]

    def test_truncated_array_keeps_complete_elements(self):
        """Test an array cut off mid-element keeps the elements before the cut."""
        text = '```json\n[{"name": "SARAH", "tags": ["lead"]}, {"name": "JOHN"}, {"name": "MI'

        assert extract_structured(text, Expect.ARRAY) == [
            {"name": "SARAH", "tags": ["lead"]},
            {"name": "JOHN"},
        ]

    def test_empty_text(self):
        """Test empty output raises ExtractionFailure."""
        with pytest.raises(ExtractionFailure):
            extract_structured("   ")

    def test_prose_only(self):
        """Test text without JSON raises ExtractionFailure."""
        with pytest.raises(ExtractionFailure):
            extract_structured("I cannot help with that.")


class TestExtractList:
    """Tests for extract_list."""

    def test_bare_array(self):
        """Test a bare array is returned."""
        assert extract_list('[{"id": 1}]', "scenes") == [{"id": 1}]

    def test_wrapped_array(self):
        """Test the wrapper key is unwrapped."""
        assert extract_list('{"scenes": [{"id": 1}, {"id": 2}]}', "scenes") == [{"id": 1}, {"id": 2}]

    def test_wrapped_single_object(self):
        """Test a wrapper holding one object yields a one-element list."""
        assert extract_list('{"scenes": {"id": 1}}', "scenes") == [{"id": 1}]

    def test_single_item_object(self):
        """Test a lone item object yields a one-element list."""
        assert extract_list('{"characterName": "MAYA"}', "recommendations") == [{"characterName": "MAYA"}]

    def test_wrapper_not_array(self):
        """Test a wrapper holding a scalar is rejected."""
        with pytest.raises(ExtractionFailure):
            extract_list('{"scenes": 3}', "scenes")
