"""Tests for value paths and tree helpers."""

import pytest
from notion_sync.values import (
    PathError,
    format_path,
    get_path,
    insert_into_list,
    merge_at,
    normalize_path,
    parse_path,
    replace_at,
)


class TestParsePath:
    """Tests for dotted path notation."""

    def test_empty_is_root(self):
        assert parse_path("") == []
        assert parse_path("   ") == []

    def test_single_key(self):
        assert parse_path("pages") == ["pages"]

    def test_nested_keys_and_index(self):
        assert parse_path("properties.title[0]") == ["properties", "title", 0]

    def test_consecutive_indices(self):
        assert parse_path("properties.title[0][1]") == ["properties", "title", 0, 1]

    def test_leading_index(self):
        assert parse_path("[2].id") == [2, "id"]

    def test_keys_with_dashes_and_underscores(self):
        assert parse_path("format.page_icon") == ["format", "page_icon"]
        assert parse_path("schema.a-b") == ["schema", "a-b"]

    @pytest.mark.parametrize("text", ["a..b", "a.", ".a", "a[x]", "a[0", "a b"])
    def test_rejects_malformed(self, text):
        with pytest.raises(PathError):
            parse_path(text)

    def test_path_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_path("a..b")


class TestNormalizePath:
    """Tests for normalize_path."""

    def test_none_is_root(self):
        assert normalize_path(None) == []

    def test_list_passes_through_as_copy(self):
        original = ["a", 0]
        result = normalize_path(original)
        assert result == ["a", 0]
        assert result is not original

    def test_string_is_parsed(self):
        assert normalize_path("a.b") == ["a", "b"]

    def test_rejects_bad_keys(self):
        with pytest.raises(PathError):
            normalize_path(["a", 1.5])
        with pytest.raises(PathError):
            normalize_path([True])


class TestFormatPath:
    def test_formats_keys_and_indices(self):
        assert format_path(["properties", "title", 0]) == "properties.title[0]"

    def test_root(self):
        assert format_path([]) == ""


class TestGetPath:
    """Tests for get_path."""

    value = {"properties": {"title": [["Hello"]]}, "content": ["a", "b"]}

    def test_root(self):
        assert get_path(self.value, []) == self.value

    def test_nested(self):
        assert get_path(self.value, "properties.title[0][0]") == "Hello"

    def test_missing_returns_default(self):
        assert get_path(self.value, "properties.missing") is None
        assert get_path(self.value, "content[5]", default="x") == "x"

    def test_index_into_mapping_returns_default(self):
        assert get_path(self.value, ["properties", 0]) is None


class TestReplaceAt:
    """Tests for replace_at."""

    def test_root_replaces_everything(self):
        assert replace_at({"a": 1}, [], {"b": 2}) == {"b": 2}

    def test_does_not_mutate_input(self):
        original = {"a": {"b": 1}}
        result = replace_at(original, "a.b", 2)
        assert result == {"a": {"b": 2}}
        assert original == {"a": {"b": 1}}

    def test_creates_missing_mappings(self):
        assert replace_at({}, "format.page_icon", "x") == {"format": {"page_icon": "x"}}

    def test_none_value_starts_empty(self):
        assert replace_at(None, ["type"], "page") == {"type": "page"}

    def test_list_index(self):
        assert replace_at({"c": [1, 2]}, "c[1]", 5) == {"c": [1, 5]}

    def test_list_index_out_of_range(self):
        with pytest.raises(PathError):
            replace_at({"c": [1]}, "c[3]", 5)

    def test_key_on_non_mapping(self):
        with pytest.raises(PathError):
            replace_at({"c": [1]}, "c.x", 5)


class TestMergeAt:
    """Tests for shallow merge."""

    def test_overwrites_present_keys_and_keeps_absent(self):
        value = {"a": 1, "b": 2}
        assert merge_at(value, [], {"b": 3, "c": 4}) == {"a": 1, "b": 3, "c": 4}

    def test_merge_is_shallow(self):
        value = {"format": {"x": 1, "y": 2}}
        assert merge_at(value, [], {"format": {"x": 9}}) == {"format": {"x": 9}}

    def test_nested_target(self):
        value = {"format": {"x": 1, "y": 2}}
        assert merge_at(value, "format", {"x": 9}) == {"format": {"x": 9, "y": 2}}

    def test_missing_target_is_created(self):
        assert merge_at({}, "format", {"x": 1}) == {"format": {"x": 1}}

    def test_non_mapping_target(self):
        with pytest.raises(PathError):
            merge_at({"content": []}, "content", {"x": 1})

    def test_non_mapping_partial(self):
        with pytest.raises(PathError):
            merge_at({}, [], ["x"])


class TestInsertIntoList:
    """Tests for positioned list inserts."""

    def test_no_anchor_appends(self):
        assert insert_into_list({"pages": ["a"]}, "pages", "b") == {"pages": ["a", "b"]}

    def test_after_anchor(self):
        value = {"pages": ["a", "b", "c"]}
        assert insert_into_list(value, "pages", "x", anchor="a") == {"pages": ["a", "x", "b", "c"]}

    def test_before_anchor(self):
        value = {"pages": ["a", "b", "c"]}
        assert insert_into_list(value, "pages", "x", anchor="c", before=True) == {"pages": ["a", "b", "x", "c"]}

    def test_missing_anchor_appends(self):
        value = {"pages": ["a"]}
        assert insert_into_list(value, "pages", "x", anchor="zzz", before=True) == {"pages": ["a", "x"]}

    def test_missing_list_is_created(self):
        assert insert_into_list({}, "pages", "x") == {"pages": ["x"]}

    def test_non_list_target(self):
        with pytest.raises(PathError):
            insert_into_list({"pages": {}}, "pages", "x")
