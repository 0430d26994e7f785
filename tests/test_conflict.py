from sqlalchemy.dialects import sqlite

from crudkit.models import Author, Book
from crudkit.utils.model_utils import QueryOption
from crudkit.utils.model_utils.conflict import (
    build_insert,
    conflict_columns_for,
    dialect_name,
    resolve_column_names,
)


def _sql(stmt):
    return str(stmt.compile(dialect=sqlite.dialect()))


class TestConflictClause:
    """Conflict-aware inserts on the configured SQLite engine."""

    def test_dialect_comes_from_session_bind(self, session):
        assert dialect_name(session, Author.__table__) == 'sqlite'

    def test_plain_insert(self, session):
        sql = _sql(build_insert(session, Author.__table__, {'name': 'A'}))

        assert sql.startswith('INSERT INTO author')
        assert 'ON CONFLICT' not in sql

    def test_do_nothing(self, session):
        sql = _sql(build_insert(session, Author.__table__, {'name': 'A'}, ()))

        assert 'ON CONFLICT (id) DO NOTHING' in sql

    def test_do_update_listed_columns(self, session):
        sql = _sql(build_insert(session, Book.__table__, {'title': 'T'}, ('author_id',)))

        assert 'ON CONFLICT (id) DO UPDATE SET author_id = excluded.author_id' in sql
        assert 'title = excluded.title' not in sql


class TestConflictColumns:
    def test_logical_names_resolve_to_columns(self):
        assert resolve_column_names(Book, ['AuthorID', 'Title', 'author_id']) == ('author_id', 'title')

    def test_unlisted_class_uses_default(self):
        option = QueryOption(updates_on_conflict={'Book': ['Title']})

        assert conflict_columns_for(option, Author) is None
        assert conflict_columns_for(option, Author, default=()) == ()
        assert conflict_columns_for(option, Book, default=('author_id',)) == ('title',)
