import pytest

from dumpfilter.core.classifier import classify, extract_identifier, skip_trivia
from dumpfilter.core.errors import MalformedStatementError
from dumpfilter.core.models import StatementKind


@pytest.mark.parametrize(
    "stmt, table",
    [
        (b"INSERT INTO users VALUES (1);\n", "users"),
        (b"INSERT INTO `users` VALUES (1);\n", "users"),
        (b'INSERT INTO "users" (id) VALUES (1);\n', "users"),
        (b"insert into Users values (1);", "Users"),
        (b"INSERT IGNORE INTO `t` VALUES (1);", "t"),
        (b"INSERT LOW_PRIORITY IGNORE INTO t VALUES (1);", "t"),
        (b"INSERT\n  INTO\tt VALUES (1);", "t"),
        (b"INSERT INTO`t`VALUES (1);", "t"),
        (b"INSERT INTO public.users (id) VALUES (1);", "public.users"),
        (b'INSERT INTO "public"."Users" VALUES (1);', "public.Users"),
        (b"INSERT INTO `shop`.`order items` VALUES (1);", "shop.order items"),
        (b"INSERT INTO `a``b` VALUES (1);", "a`b"),
        (b"/* leading */ -- note\n  INSERT INTO t VALUES (1);", "t"),
        ("INSERT INTO `café` VALUES (1);".encode("utf-8"), "café"),
    ],
)
def test_insert_statements_are_data_insertion(stmt, table):
    c = classify(stmt)
    assert c.kind == StatementKind.DATA_INSERTION
    assert c.table == table
    assert c.keyword == "INSERT INTO"


@pytest.mark.parametrize(
    "stmt",
    [
        b"INSERT INTO VALUES (1);",
        b"INSERT INTO (1);",
        b"INSERT INTO `unclosed VALUES (1);",
        b"INSERT INTO ``;",
        b"INSERT INTO",
        b"INSERT INTO t.",
    ],
)
def test_malformed_insert_passes_through_as_other(stmt):
    c = classify(stmt)
    assert c.kind == StatementKind.OTHER
    assert c.table is None
    assert c.keyword == "INSERT INTO"


@pytest.mark.parametrize(
    "stmt",
    [
        b"REPLACE INTO t VALUES (1);",
        b"SELECT 'INSERT INTO t VALUES (1)';",
        b"/*!40000 ALTER TABLE `t` DISABLE KEYS */;",
        b"-- INSERT INTO t VALUES (1);\n",
        b"INSERTINTO t VALUES (1);",
        b"DROP TABLE IF EXISTS `t`;",
        b"",
    ],
)
def test_everything_else_is_other(stmt):
    c = classify(stmt)
    assert c.kind == StatementKind.OTHER
    assert c.table is None


def test_create_table_carries_table_name():
    c = classify(b"CREATE TABLE IF NOT EXISTS `users` (\n  id int\n);")
    assert c.kind == StatementKind.OTHER
    assert c.keyword == "CREATE TABLE"
    assert c.table == "users"


def test_lock_and_unlock_tables():
    lock = classify(b"LOCK TABLES `users` WRITE;")
    assert lock.keyword == "LOCK TABLES"
    assert lock.table == "users"

    unlock = classify(b"UNLOCK TABLES;\n")
    assert unlock.keyword == "UNLOCK TABLES"
    assert unlock.table is None


def test_extract_identifier_returns_end_position():
    data = b"`a`.`b` VALUES"
    name, end = extract_identifier(data, 0)
    assert name == "a.b"
    assert data[end:] == b" VALUES"


def test_extract_identifier_raises_on_garbage():
    with pytest.raises(MalformedStatementError):
        extract_identifier(b"(1, 2)", 0)


def test_skip_trivia_stops_at_executable_comment():
    data = b"  -- a\n/* b */ /*!40101 SET x=1 */;"
    assert data[skip_trivia(data):].startswith(b"/*!40101")


def test_skip_trivia_knows_hash_comments():
    data = b"# it's\n  INSERT INTO t VALUES (1);"
    assert data[skip_trivia(data):].startswith(b"INSERT")
    assert classify(data).table == "t"


def test_double_dash_needs_blank_to_be_a_comment():
    assert skip_trivia(b"--\nSELECT 1;") == 3
    assert skip_trivia(b"-- x") == 4
    assert skip_trivia(b"--x") == 0
