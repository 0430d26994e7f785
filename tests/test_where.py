import pytest

from crudkit.errors import KeyShapeError, MisuseError
from crudkit.models import Author
from crudkit.utils.model_utils import build_where_by_keys, describe_where


def _describe(values, keys=()):
    return describe_where(build_where_by_keys(Author, values, keys))


class TestWhereByKeys:
    """Conditions built from key lists and key values."""

    def test_implicit_id_key(self):
        text, args = _describe([1, 2, 3])

        assert text == 'author.id IN (?)'
        assert args == [[1, 2, 3]]

    def test_single_named_key_flat_values(self):
        text, args = _describe(['A', 'B'], ['Name'])

        assert text == 'author.name IN (?)'
        assert args == [['A', 'B']]

    def test_single_named_key_tuple_values(self):
        text, args = _describe([['A'], ['B']], ['Name'])

        assert text == 'author.name IN (?)'
        assert args == [['A', 'B']]

    def test_composite_keys(self):
        text, args = _describe([(1, 'A'), (2, 'B')], ['ID', 'Name'])

        assert text.count('?') == len(args) == 4
        assert args == [1, 'A', 2, 'B']
        assert ' OR ' in text
        assert text.count(' AND ') == 2
        assert 'author.id = ?' in text
        assert 'author.name = ?' in text

    def test_placeholders_match_arguments(self):
        for values, keys in (
            ([1], ()),
            ([('A', 'Male', '1')], ['Name', 'Sex', 'ContactNumber']),
            ([['A']], ['Name']),
        ):
            text, args = _describe(values, keys)
            assert text.count('?') == len(args)

    def test_empty_composite_values_match_nothing(self):
        text, args = _describe([], ['ID', 'Name'])

        assert 'false' in text.lower() or '0 = 1' in text
        assert args == []

    def test_row_length_mismatch(self):
        with pytest.raises(KeyShapeError) as excinfo:
            _describe([(1, 'A'), (2,)], ['ID', 'Name'])
        assert str(excinfo.value) == 'key length 2 requires value length 2, got 1'

    def test_single_key_row_length_mismatch(self):
        with pytest.raises(KeyShapeError) as excinfo:
            _describe([['A', 'B']], ['Name'])
        assert str(excinfo.value) == 'key length 1 requires value length 1, got 2'

    def test_implicit_key_requires_flat_values(self):
        with pytest.raises(KeyShapeError):
            _describe([[1, 2]])

    def test_composite_keys_require_rows(self):
        with pytest.raises(KeyShapeError):
            _describe([1, 2], ['ID', 'Name'])

    def test_values_must_be_sequence(self):
        with pytest.raises(MisuseError):
            _describe(1)
        with pytest.raises(MisuseError):
            _describe('abc', ['Name'])

    def test_unknown_key(self):
        with pytest.raises(MisuseError):
            _describe([1], ['Missing'])
