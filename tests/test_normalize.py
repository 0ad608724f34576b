"""Tests for payload normalization, coercion and command construction."""

import unittest
import sys
from pathlib import Path

# Add src to path so we can import umoparse
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from umoparse import commands
from umoparse.coerce import to_bool, to_float, to_int, to_string
from umoparse.exceptions import DecodeError
from umoparse.normalize import (
    decode_document,
    field_sequence,
    mapping,
    optional,
    required,
    sequence,
)


class TestSequence(unittest.TestCase):
    """Test single-vs-array normalization."""

    def test_array_is_returned_unchanged(self):
        items = [{"tag": "5"}, {"tag": "6"}]
        self.assertIs(sequence(items, "route"), items)

    def test_single_object_becomes_one_element_list(self):
        item = {"tag": "5"}
        result = sequence(item, "route")
        self.assertEqual(result, [item])
        self.assertIs(result[0], item)

    def test_empty_array_is_valid(self):
        self.assertEqual(sequence([], "route"), [])

    def test_other_shapes_fail_with_field_name(self):
        for value in (None, "5", 5, True):
            with self.subTest(value=value):
                with self.assertRaises(DecodeError) as ctx:
                    sequence(value, "direction")
                self.assertEqual(ctx.exception.field, "direction")
                self.assertIn("direction", str(ctx.exception))

    def test_array_of_non_objects_fails(self):
        with self.assertRaises(DecodeError):
            sequence([{"tag": "5"}, "6"], "route")


class TestDecodeAccessors(unittest.TestCase):
    """Test the required/optional field accessors."""

    def test_decode_document(self):
        self.assertEqual(decode_document(b'{"agency": []}'), {"agency": []})

    def test_decode_document_rejects_invalid_json(self):
        with self.assertRaises(DecodeError):
            decode_document(b"<html>Service unavailable</html>")

    def test_decode_document_rejects_non_object(self):
        with self.assertRaises(DecodeError):
            decode_document(b"[1, 2, 3]")

    def test_mapping(self):
        self.assertEqual(mapping({"route": {"tag": "5"}}, "route"), {"tag": "5"})
        with self.assertRaises(DecodeError):
            mapping({"route": [{"tag": "5"}]}, "route")

    def test_field_sequence_missing_required(self):
        with self.assertRaises(DecodeError) as ctx:
            field_sequence({}, "stop")
        self.assertEqual(ctx.exception.field, "stop")

    def test_field_sequence_missing_optional_is_empty(self):
        self.assertEqual(field_sequence({}, "route", required=False), [])

    def test_field_sequence_malformed_optional_still_fails(self):
        with self.assertRaises(DecodeError):
            field_sequence({"route": "5"}, "route", required=False)

    def test_required(self):
        self.assertEqual(required({"epochTime": "1700000000000"}, "epochTime", to_int), 1700000000000)
        with self.assertRaises(DecodeError):
            required({}, "epochTime", to_int)
        with self.assertRaises(DecodeError):
            required({"epochTime": "soon"}, "epochTime", to_int)

    def test_optional(self):
        self.assertEqual(optional({"minutes": "4"}, "minutes", to_int, 0), 4)
        self.assertEqual(optional({}, "minutes", to_int, 0), 0)
        self.assertEqual(optional({"minutes": "n/a"}, "minutes", to_int, 0), 0)


class TestCoerce(unittest.TestCase):
    """Test best-effort scalar coercion."""

    def test_to_string(self):
        self.assertEqual(to_string("ttc"), "ttc")
        self.assertEqual(to_string(5), "5")
        self.assertIsNone(to_string(None))
        self.assertIsNone(to_string(True))
        self.assertIsNone(to_string({"tag": "5"}))

    def test_to_float(self):
        self.assertAlmostEqual(to_float("43.6532"), 43.6532)
        self.assertEqual(to_float(3), 3.0)
        self.assertIsNone(to_float("north"))
        self.assertIsNone(to_float(False))

    def test_to_int(self):
        self.assertEqual(to_int("1700000000000"), 1700000000000)
        self.assertEqual(to_int(42), 42)
        self.assertEqual(to_int(42.0), 42)
        self.assertEqual(to_int("3.0"), 3)
        self.assertIsNone(to_int("3.5"))
        self.assertIsNone(to_int(2.5))
        self.assertIsNone(to_int(True))
        self.assertIsNone(to_int(""))

    def test_to_bool(self):
        for value in (True, "true", "TRUE", "yes", "1", 1):
            with self.subTest(value=value):
                self.assertIs(to_bool(value), True)
        for value in (False, "false", "No", "0", 0):
            with self.subTest(value=value):
                self.assertIs(to_bool(value), False)
        self.assertIsNone(to_bool("maybe"))
        self.assertIsNone(to_bool(None))


class TestCommands(unittest.TestCase):
    """Test feed command query strings."""

    def test_agency_list(self):
        self.assertEqual(commands.agency_list().query(), "command=agencyList")

    def test_route_list(self):
        self.assertEqual(commands.route_list("ttc").query(), "command=routeList&a=ttc")

    def test_route_config_is_verbose(self):
        self.assertEqual(
            commands.route_config("ttc", "5").query(),
            "command=routeConfig&a=ttc&r=5&verbose",
        )

    def test_predictions_with_and_without_route(self):
        self.assertEqual(
            commands.predictions("ttc", "1002").query(),
            "command=predictions&a=ttc&stopId=1002",
        )
        self.assertEqual(
            commands.predictions("ttc", "1002", route="5").query(),
            "command=predictions&a=ttc&stopId=1002&routeTag=5",
        )

    def test_vehicle_commands(self):
        self.assertEqual(
            commands.vehicle_locations("sf-muni", "N", "0").query(),
            "command=vehicleLocations&a=sf-muni&r=N&t=0",
        )
        self.assertEqual(
            commands.vehicle_location("sf-muni", "1401").query(),
            "command=vehicleLocation&a=sf-muni&v=1401",
        )
        self.assertEqual(commands.schedule("sf-muni", "N").query(), "command=schedule&a=sf-muni&r=N")

    def test_values_are_quoted(self):
        self.assertEqual(
            commands.route_list("a b&c").query(),
            "command=routeList&a=a%20b%26c",
        )

    def test_url(self):
        self.assertEqual(
            commands.agency_list().url("https://feed.example/json"),
            "https://feed.example/json?command=agencyList",
        )


if __name__ == "__main__":
    unittest.main()
