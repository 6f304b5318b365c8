import unittest

from models.cursor import Cursor
from models.errors import ConflictingShowFlags, PermissionDenied
from models.identity import IdIdentity, NameIdentity, PrefixIdentity
from models.permissions import CallerPermissions
from models.query import (
    MYSQL,
    SQLITE,
    OutputFields,
    ShowFlags,
    check_patrol_access,
    compose_query,
    escape_like,
)

ANONYMOUS = CallerPermissions()
SINGLE = IdIdentity(ids=(1,), multi=False)
NAMES = NameIdentity(names=("Example", "Other"), multi=True)


def compose(identity=SINGLE, props=("ids",), show=(), permissions=ANONYMOUS, **kwargs):
    return compose_query(
        identity=identity,
        permissions=permissions,
        fields=OutputFields.from_props(list(props)),
        show=ShowFlags.from_list(list(show)),
        limit=10,
        **kwargs,
    )


class TestShowFlags(unittest.TestCase):
    def test_parse(self):
        show = ShowFlags.from_list(["minor", "!top"])
        self.assertEqual(show, ShowFlags(minor=True, top=False))
        self.assertFalse(show.filters_patrol)

    def test_conflicts(self):
        for axis in ("minor", "patrolled", "top", "new"):
            with self.subTest(axis=axis):
                with self.assertRaises(ConflictingShowFlags):
                    ShowFlags.from_list([axis, f"!{axis}"])

    def test_patrol_access(self):
        fields = OutputFields.from_props(["ids", "patrolled"])
        with self.assertRaises(PermissionDenied):
            check_patrol_access(fields, ShowFlags(), ANONYMOUS)
        with self.assertRaises(PermissionDenied):
            check_patrol_access(OutputFields(), ShowFlags(patrolled=False), ANONYMOUS)
        check_patrol_access(fields, ShowFlags(), CallerPermissions(rights=frozenset({"patrolmarks"})))
        check_patrol_access(OutputFields(ids=True), ShowFlags(), ANONYMOUS)


class TestJoins(unittest.TestCase):
    def tables(self, query):
        return [query.from_table] + [j.table for j in query.joins]

    def test_base_tables(self):
        query = compose()
        self.assertEqual(self.tables(query), ["page", "revision_compat"])
        self.assertFalse(query.straight_join)

    def test_comment_join_only_for_comments(self):
        self.assertNotIn("comment_revision", self.tables(compose(props=["ids", "title"])))
        for prop in ("comment", "parsedcomment"):
            query = compose(props=[prop])
            self.assertIn("comment_revision", self.tables(query))
            self.assertIn("comment_text AS rev_comment_text", query.fields)

    def test_tag_joins(self):
        query = compose(props=["tags"])
        self.assertIn("tag_summary", self.tables(query))
        self.assertNotIn("change_tag", self.tables(query))
        query = compose(tag="visualeditor")
        self.assertIn("change_tag", self.tables(query))
        self.assertNotIn("tag_summary", self.tables(query))
        self.assertIn("ct_tag = %s", query.where)

    def test_patrol_output_uses_a_left_join(self):
        query = compose(props=["patrolled"])
        rc = query.joins[-1]
        self.assertEqual((rc.table, rc.kind, rc.index), ("recentchanges", "LEFT JOIN", "rc_user_text"))
        self.assertEqual(query.from_table, "page")
        self.assertFalse(query.straight_join)

    def test_patrol_filter_forces_the_join_order(self):
        query = compose(show=["!patrolled"])
        self.assertEqual(self.tables(query), ["revision_compat", "recentchanges", "page"])
        self.assertEqual(query.joins[0].kind, "JOIN")
        self.assertTrue(query.straight_join)
        sql, _ = query.to_sql(MYSQL)
        self.assertTrue(sql.startswith("SELECT STRAIGHT_JOIN "))
        self.assertIn("JOIN recentchanges USE INDEX (rc_user_text) ON", sql)
        sql, _ = query.to_sql(SQLITE)
        self.assertNotIn("STRAIGHT_JOIN", sql)
        self.assertNotIn("USE INDEX", sql)

    def test_optional_fields(self):
        self.assertNotIn("rev_len", compose(props=["ids"]).fields)
        self.assertIn("rev_len", compose(props=["sizediff"]).fields)
        flags = compose(props=["flags"]).fields
        self.assertIn("page_latest", flags)
        self.assertIn("rev_parent_id", flags)
        self.assertNotIn("rev_page", flags)


class TestConditions(unittest.TestCase):
    def test_visibility_exclusion(self):
        self.assertIn("(rev_deleted & 4) != 4", compose().where)
        query = compose(permissions=CallerPermissions(rights=frozenset({"deletedhistory"})))
        self.assertIn("(rev_deleted & 12) != 12", query.where)
        query = compose(permissions=CallerPermissions(rights=frozenset({"deletedhistory", "viewsuppressed"})))
        self.assertFalse(any("rev_deleted" in w for w in query.where))

    def test_identity_conditions(self):
        query = compose(identity=NAMES)
        self.assertIn("rev_user_text IN (%s, %s)", query.where)
        self.assertEqual(query.params, ["Example", "Other"])
        query = compose(identity=PrefixIdentity(prefix="10%_"))
        self.assertIn("rev_user_text LIKE %s ESCAPE '`'", query.where)
        self.assertEqual(query.params, ["10`%`_%"])

    def test_escape_like(self):
        self.assertEqual(escape_like("a`b"), "a``b")

    def test_single_identity_cursor(self):
        query = compose(cursor=Cursor(timestamp="20240101000002", row_id=20))
        self.assertEqual(
            query.where[0], "rev_timestamp < %s OR (rev_timestamp = %s AND rev_id < %s)"
        )
        self.assertEqual(query.params[:3], ["20240101000002", "20240101000002", 20])
        self.assertEqual(query.order_by, ["rev_timestamp DESC", "rev_id DESC"])

    def test_multi_identity_cursor(self):
        cursor = Cursor(mode="id", identity_value="2", timestamp="20240101000002", row_id=20)
        query = compose(identity=IdIdentity(ids=(1, 2), multi=True), cursor=cursor, direction="newer")
        self.assertEqual(
            query.where[0],
            "rev_user > %s OR (rev_user = %s AND (rev_timestamp > %s OR "
            "(rev_timestamp = %s AND rev_id > %s)))",
        )
        self.assertEqual(query.params[:5], [2, 2, "20240101000002", "20240101000002", 20])
        self.assertEqual(query.order_by, ["rev_user ASC", "rev_timestamp ASC", "rev_id ASC"])

    def test_time_range(self):
        query = compose(start="20240201000000", end="20240101000000")
        self.assertEqual(query.where[-2:], ["rev_timestamp >= %s", "rev_timestamp <= %s"])
        self.assertEqual(query.params[-2:], ["20240101000000", "20240201000000"])
        query = compose(start="20240101000000", direction="newer")
        self.assertEqual(query.where[-1], "rev_timestamp >= %s")

    def test_show_and_namespace(self):
        query = compose(show=["!minor", "top", "!new"], namespaces=[0, 120])
        for condition in ("page_namespace IN (%s, %s)", "rev_minor_edit = 0", "rev_id = page_latest", "rev_parent_id != 0"):
            self.assertIn(condition, query.where)

    def test_limit_fetches_one_extra_row(self):
        query = compose()
        self.assertEqual(query.limit, 11)
        sql, params = query.to_sql(SQLITE)
        self.assertTrue(sql.endswith("LIMIT 11"))
        self.assertNotIn("%s", sql)
        self.assertEqual(sql.count("?"), len(params))
