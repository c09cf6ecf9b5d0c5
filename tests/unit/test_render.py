"""Unit tests for value rendering and tables."""

from console_bridge.capture.serializer import serialize
from console_bridge.formatting.render import (
    INLINE_WIDTH,
    error_text,
    number_text,
    render_cell,
    render_message,
    render_value,
)
from console_bridge.formatting.table import is_tabular, render_table
from console_bridge.models import (
    ArrayValue,
    CircularValue,
    ErrorValue,
    MaxDepthValue,
    NumberValue,
    ObjectValue,
    StringValue,
    parse_serialized,
)


class TestLeafRendering:
    """Tests for primitive and opaque values."""

    def test_top_level_strings_are_raw(self):
        assert render_value(StringValue(value="hi there")) == "hi there"

    def test_nested_strings_are_quoted(self):
        assert render_value(serialize(["hi"])) == '[ "hi" ]'

    def test_truncated_string_suffix(self):
        value = StringValue(value="abc", truncated=True, original_length=10)
        assert render_value(value) == "abc... (7 more characters)"

    def test_numbers(self):
        assert number_text(NumberValue(value=3.0)) == "3"
        assert number_text(NumberValue(value=2.5)) == "2.5"
        assert number_text(NumberValue(special="-Infinity")) == "-Infinity"

    def test_misc_leaves(self):
        """Each tag has a console-like rendering."""
        cases = {
            "bigint": ({"type": "bigint", "value": "9007199254740993"}, "9007199254740993n"),
            "symbol": ({"type": "symbol", "description": "id"}, "Symbol(id)"),
            "function": ({"type": "function", "name": "onClick"}, "[Function: onClick]"),
            "promise": ({"type": "promise"}, "Promise { <pending> }"),
            "dom": ({"type": "dom", "tagName": "DIV", "id": "app", "className": "a b"}, "<div#app.a.b>"),
            "arraybuffer": ({"type": "arraybuffer", "byteLength": 8}, "ArrayBuffer { byteLength: 8 }"),
            "typedarray": ({"type": "typedarray", "kind": "Uint8Array", "length": 4}, "Uint8Array(4)"),
            "max-depth": ({"type": "max-depth"}, "[Object]"),
            "unknown": ({"type": "unknown", "stringified": "<thing>"}, "<thing>"),
        }
        for tag, (wire, expected) in cases.items():
            assert render_value(parse_serialized(wire)) == expected, tag

    def test_circular_cites_first_occurrence(self):
        assert render_value(CircularValue(path="root.self", target="root")) == "[Circular: root]"
        assert render_value(CircularValue(path="root.self")) == "[Circular: root.self]"


class TestErrors:
    """Tests for error rendering."""

    def test_error_header_and_stack(self):
        error = ErrorValue(name="TypeError", message="bad", stack="    at f (app.js:1:1)")
        assert error_text(error) == "TypeError: bad\n    at f (app.js:1:1)"

    def test_stack_with_header_not_repeated(self):
        error = ErrorValue(name="Error", message="x", stack="Error: x\n    at g")
        assert render_value(error) == "Error: x\n    at g"

    def test_nested_error_is_compact(self):
        value = ObjectValue(fields={"err": ErrorValue(name="Error", message="x", stack="Error: x\n  at")})
        assert render_value(value) == "{ err: [Error: x] }"


class TestContainers:
    """Tests for arrays, objects, maps and sets."""

    def test_inline_array_and_object(self):
        assert render_value(serialize([1, 2, 3])) == "[ 1, 2, 3 ]"
        assert render_value(serialize({"a": 1, "b c": True})) == '{ a: 1, "b c": true }'
        assert render_value(serialize([])) == "[]"

    def test_class_name_prefix(self):
        class User:
            def __init__(self):
                self.name = "ada"

        assert render_value(serialize(User())) == 'User { name: "ada" }'

    def test_long_values_pretty_printed(self):
        """Containers wider than the inline width span several lines."""
        value = serialize({f"key{i}": "v" * 10 for i in range(10)})
        text = render_value(value)
        lines = text.splitlines()

        assert lines[0] == "{"
        assert lines[1] == '  key0: "vvvvvvvvvv",'
        assert lines[-1] == "}"
        assert all(len(line) <= INLINE_WIDTH for line in lines)

    def test_truncation_suffixes(self):
        assert render_value(serialize(list(range(1005)))).endswith("... 5 more items\n]")
        array = ArrayValue(items=[], truncated=True, total_length=3)
        assert render_value(array) == "[ ... 3 more items ]"

    def test_map_and_set(self):
        assert render_value(serialize({1: "one"})) == 'Map(1) { 1 => "one" }'
        assert render_value(serialize({True})) == "Set(1) { true }"

    def test_max_depth_in_container(self):
        value = ObjectValue(fields={"deep": MaxDepthValue(kind="array")})
        assert render_value(value) == "{ deep: [Array] }"

    def test_message_joins_arguments(self):
        assert render_message([StringValue(value="a"), NumberValue(value=1)]) == "a 1"

    def test_cell_is_single_line(self):
        value = serialize({f"key{i}": "v" * 10 for i in range(10)})
        assert "\n" not in render_cell(value)


class TestTables:
    """Tests for table rendering."""

    def test_is_tabular(self):
        assert is_tabular(serialize([{"a": 1}]))
        assert is_tabular(serialize([[1, 2]]))
        assert not is_tabular(serialize([1, 2]))
        assert not is_tabular(serialize([]))
        assert not is_tabular(None)

    def test_widths_fit_widest_cell(self):
        table = render_table(serialize([{"a": 1, "b": 2}, {"a": 3, "b": 44}]))
        assert table.splitlines() == [
            "┌───┬────┐",
            "│ a │ b  │",
            "├───┼────┤",
            "│ 1 │ 2  │",
            "│ 3 │ 44 │",
            "└───┴────┘",
        ]

    def test_union_of_keys_with_missing_cells(self):
        table = render_table(serialize([{"a": 1}, {"b": "x"}]))
        lines = table.splitlines()
        assert lines[1] == "│ a │ b │"
        assert lines[3] == "│ 1 │   │"
        assert lines[4] == "│   │ x │"

    def test_array_rows_use_indices(self):
        table = render_table(serialize([[1, 2], [3]]))
        assert table.splitlines()[1] == "│ 0 │ 1 │"

    def test_unknown_columns_give_empty_table(self):
        assert render_table(serialize([{"a": 1}]), ["zzz"]) == ""
