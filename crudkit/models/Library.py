from ..extensions import db
from .base import AuditMixin, SoftDeleteMixin, TimestampMixin


class Author(TimestampMixin, SoftDeleteMixin, AuditMixin, db.Model):
    __tablename__ = "author"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    name = db.Column(db.String(100))
    sex = db.Column(db.String(20))
    contact_number = db.Column(db.String(32))

    books = db.relationship("Book", back_populates="author", lazy="select")

    def __repr__(self):
        return f"<Author id={self.id} name={self.name!r}>"


class Editor(TimestampMixin, SoftDeleteMixin, db.Model):
    __tablename__ = "editor"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    name = db.Column(db.String(100))
    sex = db.Column(db.String(20))

    books = db.relationship("Book", back_populates="editor", lazy="select")

    def __repr__(self):
        return f"<Editor id={self.id} name={self.name!r}>"


class Book(TimestampMixin, SoftDeleteMixin, db.Model):
    __tablename__ = "book"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    title = db.Column(db.String(200))
    author_id = db.Column(db.Integer, db.ForeignKey("author.id"), index=True)
    editor_id = db.Column(db.Integer, db.ForeignKey("editor.id"), index=True)

    author = db.relationship("Author", back_populates="books")
    editor = db.relationship("Editor", back_populates="books")

    def __repr__(self):
        return f"<Book id={self.id} title={self.title!r}>"
