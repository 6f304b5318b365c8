import unittest
from unittest.mock import Mock

from models.errors import EmptyParameter, InvalidIdentity
from models.identity import (
    IdIdentity,
    NameIdentity,
    PrefixIdentity,
    canonical_username,
    is_ip,
    resolve_identity,
)


class TestCanonicalUsername(unittest.TestCase):
    def test_first_letter_and_underscores(self):
        self.assertEqual(canonical_username("example_user"), "Example user")
        self.assertEqual(canonical_username("  Some   name "), "Some name")

    def test_invalid_names(self):
        for name in ("", "   ", "A#b", "Foo/bar", "a@b", "[[x]]", "x" * 300, "127.0.0.1"):
            with self.subTest(name=name):
                self.assertIsNone(canonical_username(name))

    def test_is_ip(self):
        self.assertTrue(is_ip("192.0.2.1"))
        self.assertTrue(is_ip("2001:db8::1"))
        self.assertTrue(is_ip("192.0.2.xxx"))
        self.assertFalse(is_ip("Example"))


class TestResolveIdentity(unittest.TestCase):
    def test_prefix(self):
        identity = resolve_identity(userprefix="192.0.2.")
        self.assertEqual(identity, PrefixIdentity(prefix="192.0.2."))
        self.assertTrue(identity.multi)

    def test_ids(self):
        identity = resolve_identity(userids=[3, 1])
        self.assertEqual(identity, IdIdentity(ids=(3, 1), multi=True))
        self.assertFalse(resolve_identity(userids=[3]).multi)

    def test_invalid_ids(self):
        with self.assertRaises(InvalidIdentity):
            resolve_identity(userids=[0])
        with self.assertRaises(InvalidIdentity):
            resolve_identity(userids=[1, -5])
        with self.assertRaises(EmptyParameter):
            resolve_identity(userids=[])

    def test_empty_names(self):
        with self.assertRaises(EmptyParameter):
            resolve_identity(user=[])
        with self.assertRaises(EmptyParameter) as cm:
            resolve_identity(user=["Example", ""])
        self.assertEqual(cm.exception.code, "paramempty_user")

    def test_invalid_name_carries_the_value(self):
        with self.assertRaises(InvalidIdentity) as cm:
            resolve_identity(user=["Good", "Bad|name"])
        self.assertEqual(cm.exception.value, "Bad|name")

    def test_names_upgrade_to_ids_when_all_resolve(self):
        lookup = Mock(return_value=[7, 9])
        identity = resolve_identity(user=["example", "Other"], lookup_user_ids=lookup)
        lookup.assert_called_once_with(["Example", "Other"])
        self.assertEqual(identity, IdIdentity(ids=(7, 9), multi=True, names=("Example", "Other")))

    def test_partial_resolution_stays_in_name_mode(self):
        lookup = Mock(return_value=[7])
        identity = resolve_identity(user=["Example", "Ghost"], lookup_user_ids=lookup)
        self.assertEqual(identity, NameIdentity(names=("Example", "Ghost"), multi=True))

    def test_ips_skip_the_lookup(self):
        lookup = Mock(return_value=[7, 9])
        identity = resolve_identity(user=["Example", "Other", "192.0.2.1"], lookup_user_ids=lookup)
        lookup.assert_not_called()
        self.assertIsInstance(identity, NameIdentity)
        self.assertEqual(identity.names, ("Example", "Other", "192.0.2.1"))

    def test_single_name_is_not_multi(self):
        identity = resolve_identity(user=["Example"], lookup_user_ids=Mock(return_value=[1]))
        self.assertEqual(identity, IdIdentity(ids=(1,), multi=False, names=("Example",)))

    def test_exactly_one_parameter(self):
        with self.assertRaises(ValueError):
            resolve_identity()
        with self.assertRaises(ValueError):
            resolve_identity(user=["Example"], userprefix="Ex")
