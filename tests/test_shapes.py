import pytest

from crudkit.errors import KeyShapeError, MisuseError
from crudkit.models import Author, Book
from crudkit.utils.model_utils import Repository
from crudkit.utils.model_utils.shapes import (
    assert_sequence,
    assert_single_dimension,
    assert_two_dimension,
    coerce_instance,
    is_sequence,
    resolve_model_class,
)


class TestShapeChecks:
    """Sequence shape validators."""

    @pytest.mark.parametrize('value', [[1, 2], (1,), [], [[1]]])
    def test_sequences_pass(self, value):
        assert_sequence(value)

    @pytest.mark.parametrize('value', ['abc', b'abc', 1, None, {'a': 1}])
    def test_non_sequences_fail(self, value):
        with pytest.raises(MisuseError) as excinfo:
            assert_sequence(value)
        assert str(excinfo.value) == 'value must be a kind of sequence'

    def test_strings_are_not_sequences(self):
        assert not is_sequence('abc')
        assert is_sequence(['abc'])

    def test_single_dimension(self):
        assert_single_dimension([1, 'a', None])
        with pytest.raises(KeyShapeError) as excinfo:
            assert_single_dimension([1, [2]])
        assert str(excinfo.value) == 'value must be a single dimension sequence'

    def test_two_dimension(self):
        assert_two_dimension([(1, 'a'), [2, 'b']])
        assert_two_dimension([])
        with pytest.raises(KeyShapeError) as excinfo:
            assert_two_dimension([1, 2])
        assert str(excinfo.value) == 'value must be a 2 dimension sequence'

    def test_three_dimensions_rejected(self):
        with pytest.raises(KeyShapeError):
            assert_two_dimension([[1, [2]]])


class TestModelCoercion:
    """Turning caller values into model instances."""

    def test_instance_passes_through(self):
        author = Author(name='Vichheka')
        assert coerce_instance(Author, author) is author

    def test_mapping_builds_instance(self):
        author = coerce_instance(Author, {'Name': 'Vichheka', 'Books': [{'Title': 'T'}]})

        assert isinstance(author, Author)
        assert author.name == 'Vichheka'
        assert isinstance(author.books[0], Book)
        assert author.books[0].title == 'T'

    def test_other_values_fail(self):
        with pytest.raises(MisuseError) as excinfo:
            coerce_instance(Author, 'hello')
        assert str(excinfo.value) == 'model must be a mapping or an instance of Author'

    def test_model_class_from_instance_or_class(self):
        assert resolve_model_class(Author) is Author
        assert resolve_model_class(Author(name='x')) is Author

    def test_unmapped_template_fails(self):
        with pytest.raises(MisuseError):
            resolve_model_class(dict)


class TestRepositoryContainer:
    def test_new_collection_is_empty_list(self):
        repo = Repository(Author)
        collection = repo.new_collection()

        assert collection == []
        assert collection is not repo.new_collection()

    def test_repository_accepts_instance_template(self):
        assert Repository(Author(name='x')).model is Author

    def test_repository_rejects_plain_values(self):
        with pytest.raises(MisuseError):
            Repository('hello')
