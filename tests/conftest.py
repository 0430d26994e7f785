import os

import pytest
from sqlalchemy import select

from crudkit import create_app
from crudkit.database import shutdown
from crudkit.extensions import db
from crudkit.models import Author, Book, Editor


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    # Use testing configuration
    os.environ['FLASK_ENV'] = 'testing'

    app = create_app('testing')

    with app.app_context():
        # Create all tables
        db.create_all()
        yield app
        # Drop all tables
        db.session.remove()
        db.drop_all()
        shutdown()


@pytest.fixture(scope='function')
def runner(app):
    """Create test CLI runner."""
    return app.test_cli_runner()


@pytest.fixture(scope='function')
def session(app):
    """Empty every table and hand out a fresh session."""
    db.session.remove()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    yield db.session
    db.session.rollback()
    db.session.remove()


@pytest.fixture(scope='function')
def seed(session):
    """Insert rows through the ORM and detach them from the session."""
    def _seed(*instances):
        session.add_all(instances)
        session.commit()
        session.expunge_all()
        return instances
    return _seed


@pytest.fixture(scope='function')
def library(seed):
    """One author, one editor and one book linking them."""
    def _library(contact_number=None):
        return seed(
            Author(id=1, name='Henglong', sex='Male', contact_number=contact_number),
            Editor(id=1, name='Henglong', sex='Male'),
            Book(id=1, title='Hello-World', author_id=1, editor_id=1),
        )
    return _library


@pytest.fixture(scope='function')
def rows(session):
    """Read back table contents as plain tuples ordered by primary key."""
    def _rows(model, *fields):
        columns = [getattr(model, name) for name in fields]
        return [tuple(row) for row in session.execute(select(*columns).order_by(model.id))]
    return _rows
