import pytest

from crudkit.errors import MisuseError
from crudkit.models import Author, Book, Editor
from crudkit.utils.model_utils import QueryOption, Repository

AUTHOR = ('id', 'name', 'sex', 'contact_number')


class TestUpdates:
    """Repository.updates bulk semantics."""

    def test_selected_field_only_and_no_associations(self, library, rows):
        """Only Sex changes; the nested book and editor never reach the database."""
        library(contact_number='111')
        values = Author(
            name='Ignored',
            sex='Female',
            books=[Book(title='Nested', editor=Editor(name='Nested'))],
        )

        affected = Repository(Author).updates([1], values, QueryOption(selected_fields=['Sex']))

        assert affected == 1
        assert rows(Author, *AUTHOR) == [(1, 'Henglong', 'Female', '111')]
        assert rows(Book, 'id') == [(1,)]
        assert rows(Editor, 'id') == [(1,)]

    def test_mapping_values_on_many_rows(self, seed, rows):
        seed(Author(id=1, name='A'), Author(id=2, name='B'), Author(id=3, name='C'))

        affected = Repository(Author).updates([1, 2], {'Sex': 'Female'})

        assert affected == 2
        assert rows(Author, 'id', 'sex') == [(1, 'Female'), (2, 'Female'), (3, None)]

    def test_mapping_none_is_written(self, seed, rows):
        """Mapping entries are written as given, None included."""
        seed(Author(id=1, name='A', contact_number='1'))

        Repository(Author).updates([1], {'ContactNumber': None})

        assert rows(Author, 'contact_number') == [(None,)]

    def test_instance_none_values_skipped(self, seed, rows):
        seed(Author(id=1, name='A', sex='Male'))

        Repository(Author).updates([1], Author(name='Renamed'))

        assert rows(Author, 'name', 'sex') == [('Renamed', 'Male')]

    def test_omitted_fields_are_dropped(self, seed, rows):
        seed(Author(id=1, name='A', sex='Male'))

        Repository(Author).updates(
            [1],
            {'Name': 'Renamed', 'Sex': 'Female'},
            QueryOption(omitted_fields=['Sex']),
        )

        assert rows(Author, 'name', 'sex') == [('Renamed', 'Male')]

    def test_composite_keys(self, seed, rows):
        seed(Author(id=1, name='A', sex='Male'), Author(id=2, name='A', sex='Female'))

        affected = Repository(Author).updates(
            [('A', 'Female')],
            {'ContactNumber': '42'},
            QueryOption(keys=['Name', 'Sex']),
        )

        assert affected == 1
        assert rows(Author, 'id', 'contact_number') == [(1, None), (2, '42')]

    def test_soft_deleted_rows_are_skipped(self, seed, rows):
        seed(Author(id=1, name='A'), Author(id=2, name='B'))
        repo = Repository(Author)
        repo.delete([2])

        assert repo.updates([1, 2], {'Sex': 'Female'}) == 1
        assert rows(Author, 'id', 'sex') == [(1, 'Female'), (2, None)]

    def test_empty_keys_is_noop(self, session):
        assert Repository(Author).updates([], {'Sex': 'Female'}) == 0

    def test_non_sequence_keys_fail(self, session):
        with pytest.raises(MisuseError):
            Repository(Author).updates(1, {'Sex': 'Female'})

    def test_invalid_values_fail(self, session):
        with pytest.raises(MisuseError):
            Repository(Author).updates([1], 'Female')
