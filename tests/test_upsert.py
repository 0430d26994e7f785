import pytest

from crudkit.errors import MisuseError
from crudkit.models import Author, Book
from crudkit.utils.model_utils import QueryOption, Repository


class TestUpsert:
    """Repository.upsert semantics."""

    def test_inserts_new_rows(self, session, rows):
        """Rows without a conflicting key are inserted and get their ids."""
        got = Repository(Author).upsert([Author(name='A'), Author(name='B')])

        assert [author.id for author in got] == [1, 2]
        assert rows(Author, 'id', 'name') == [(1, 'A'), (2, 'B')]

    def test_conflict_updates_selected_fields_only(self, seed, rows):
        """Only the selected columns of an existing row are overwritten."""
        seed(Author(id=1, name='Old', sex='Male'))

        Repository(Author).upsert(
            [Author(id=1, name='New', sex='Female'), Author(id=2, name='Fresh', sex='Female')],
            QueryOption(selected_fields=['Name']),
        )

        assert rows(Author, 'id', 'name', 'sex') == [(1, 'New', 'Male'), (2, 'Fresh', 'Female')]

    def test_conflict_without_selection_leaves_row(self, seed, rows):
        """With nothing selected an existing row is left as it is."""
        seed(Author(id=1, name='Old', sex='Male'))

        Repository(Author).upsert([Author(id=1, name='New', sex='Female')])

        assert rows(Author, 'id', 'name', 'sex') == [(1, 'Old', 'Male')]

    def test_repeated_upsert_only_touches_listed_column(self, seed, rows):
        """Running the same upsert twice only ever changes the listed column."""
        seed(Author(id=1, name='Old', sex='Male', contact_number='1'))
        option = QueryOption(updates_on_conflict={'Author': ['Sex']})
        repo = Repository(Author)

        for _ in range(2):
            repo.upsert([{'ID': 1, 'Name': 'Ignored', 'Sex': 'Female', 'ContactNumber': '2'}], option)

        assert rows(Author, 'id', 'name', 'sex', 'contact_number') == [(1, 'Old', 'Female', '1')]

    def test_omitted_fields_are_not_inserted(self, session, rows):
        """Omitted columns are left out of the insert."""
        Repository(Author).upsert(
            [Author(name='A', contact_number='123')],
            QueryOption(omitted_fields=['ContactNumber']),
        )

        assert rows(Author, 'name', 'contact_number') == [('A', None)]

    def test_associations_follow_the_author(self, session, rows):
        """New books on an upserted author are saved with its key."""
        Repository(Author).upsert([Author(name='A', books=[Book(title='T')])])

        assert rows(Book, 'id', 'title', 'author_id') == [(1, 'T', 1)]

    def test_empty_sequence_is_noop(self, session, rows):
        assert Repository(Author).upsert([]) == []
        assert rows(Author, 'id') == []

    def test_mixed_element_types_fail(self, session):
        """Every element must share one concrete type."""
        with pytest.raises(MisuseError) as excinfo:
            Repository(Author).upsert([Author(name='A'), {'Name': 'B'}])

        assert str(excinfo.value) == 'upsert requires elements of a single type'

    def test_non_sequence_fails(self, session):
        with pytest.raises(MisuseError):
            Repository(Author).upsert(Author(name='A'))
