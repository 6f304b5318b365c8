import unittest

from models.cursor import Cursor, cursor_before_row, cursor_from_row, decode_cursor, encode_cursor
from models.errors import MalformedContinuation
from models.identity import IdIdentity, NameIdentity, PrefixIdentity
from models.revision import ContributionRow

SINGLE = IdIdentity(ids=(1,), multi=False)
IDS = IdIdentity(ids=(1, 2), multi=True)
UPGRADED = IdIdentity(ids=(1, 2), multi=True, names=("Example", "Other"))
NAMES = NameIdentity(names=("Example", "192.0.2.1"), multi=True)


def row(**kwargs) -> ContributionRow:
    values = {
        "rev_id": 20,
        "rev_timestamp": "20240101000002",
        "rev_user": 1,
        "rev_user_text": "Example",
        "page_namespace": 0,
        "page_title": "Sandbox",
    }
    values.update(kwargs)
    return ContributionRow(**values)


class TestEncode(unittest.TestCase):
    def test_single_identity(self):
        self.assertEqual(encode_cursor(cursor_from_row(row(), SINGLE)), "20240101000002|20")

    def test_id_mode(self):
        self.assertEqual(encode_cursor(cursor_from_row(row(), IDS)), "id|1|20240101000002|20")

    def test_name_and_prefix_mode(self):
        self.assertEqual(encode_cursor(cursor_from_row(row(), NAMES)), "name|Example|20240101000002|20")
        self.assertEqual(
            encode_cursor(cursor_from_row(row(), PrefixIdentity(prefix="Ex"))),
            "name|Example|20240101000002|20",
        )

    def test_binary_columns(self):
        cursor = cursor_from_row(row(rev_timestamp=b"20240101000002", rev_user_text=b"Example"), NAMES)
        self.assertEqual(encode_cursor(cursor), "name|Example|20240101000002|20")

    def test_before_row(self):
        self.assertEqual(cursor_before_row(row(), SINGLE, "older").row_id, 21)
        self.assertEqual(cursor_before_row(row(), SINGLE, "newer").row_id, 19)


class TestDecode(unittest.TestCase):
    def test_single_identity(self):
        cursor, identity = decode_cursor("20240101000002|20", SINGLE)
        self.assertEqual(cursor, Cursor(timestamp="20240101000002", row_id=20))
        self.assertIs(identity, SINGLE)

    def test_multi_identity(self):
        cursor, identity = decode_cursor("id|2|20240101000002|20", IDS)
        self.assertEqual(cursor.mode, "id")
        self.assertEqual(cursor.identity_value, "2")
        self.assertIs(identity, IDS)

    def test_round_trip(self):
        cursor = cursor_from_row(row(), NAMES)
        decoded, _ = decode_cursor(encode_cursor(cursor), NAMES)
        self.assertEqual(decoded, cursor)

    def test_wrong_arity(self):
        for value in ("20240101000002", "a|b|20240101000002|20", "20240101000002|20|1"):
            with self.subTest(value=value):
                with self.assertRaises(MalformedContinuation):
                    decode_cursor(value, SINGLE)
        for value in ("20240101000002|20", "name|Example|20240101000002", "name|a|b|20240101000002|20"):
            with self.subTest(value=value):
                with self.assertRaises(MalformedContinuation):
                    decode_cursor(value, NAMES)

    def test_bad_components(self):
        for value in ("2024|20", "20240101000002|x", "20240101000002|-1"):
            with self.subTest(value=value):
                with self.assertRaises(MalformedContinuation):
                    decode_cursor(value, SINGLE)
        with self.assertRaises(MalformedContinuation):
            decode_cursor("user|Example|20240101000002|20", NAMES)
        with self.assertRaises(MalformedContinuation):
            decode_cursor("id|Example|20240101000002|20", IDS)

    def test_non_ascii_digits(self):
        for value in ("20240101000002|²", "20240101000002|٣", "2024010100000٢|20", "20240101000002\n|20"):
            with self.subTest(value=value):
                with self.assertRaises(MalformedContinuation):
                    decode_cursor(value, SINGLE)
        with self.assertRaises(MalformedContinuation):
            decode_cursor("id|²|20240101000002|4", IDS)

    def test_name_cursor_downgrades_upgraded_ids(self):
        cursor, identity = decode_cursor("name|Other|20240101000002|20", UPGRADED)
        self.assertEqual(identity, NameIdentity(names=("Example", "Other"), multi=True))
        self.assertEqual(cursor.identity_value, "Other")

    def test_name_cursor_for_explicit_ids(self):
        with self.assertRaises(MalformedContinuation):
            decode_cursor("name|Other|20240101000002|20", IDS)

    def test_id_cursor_is_never_applied_to_names(self):
        with self.assertRaises(MalformedContinuation):
            decode_cursor("id|1|20240101000002|20", NAMES)
