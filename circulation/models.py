from __future__ import annotations

from peewee import *
from playhouse.sqlite_ext import JSONField

from circulation.db import db


class BaseModel(Model):
    class Meta:
        database = db


class Book(BaseModel):
    isbn = TextField(primary_key=True)
    title = TextField()
    author = TextField(default="")
    publisher = TextField(default="")
    genre = TextField(default="")
    total_copies = IntegerField(default=0)
    available_copies = IntegerField(default=0)
    is_reserved = BooleanField(default=False)

    class Meta:
        table_name = "books"
        constraints = [
            Check("available_copies >= 0"),
            Check("available_copies <= total_copies"),
        ]


class Member(BaseModel):
    member_id = TextField(primary_key=True)
    name = TextField()
    phone = TextField()
    preferences = JSONField(default=list)
    registration_date = DateField()
    expiry_date = DateField()
    max_books = IntegerField(default=2)
    is_admin = BooleanField(default=False)
    password_hash = TextField(default="")

    class Meta:
        table_name = "members"


# Книги и читатели в выдачах/резервах хранятся просто ключами:
# удаление книги с историей блокирует вызывающий код, а не БД.
class Loan(BaseModel):
    loan_id = TextField(primary_key=True)
    member_id = TextField(index=True)
    isbn = TextField(index=True)
    borrow_date = DateField()
    due_date = DateField()
    return_date = DateField(null=True)
    renew_count = IntegerField(default=0)
    fine = FloatField(default=0.0)
    is_returned = BooleanField(default=False)

    class Meta:
        table_name = "loans"


class Reservation(BaseModel):
    reservation_id = TextField(primary_key=True)
    member_id = TextField(index=True)
    isbn = TextField(index=True)
    reservation_date = DateField()
    is_active = BooleanField(default=True)
    # порядок создания внутри одного дня
    seq = IntegerField(default=0)

    class Meta:
        table_name = "reservations"


# Один активный резерв на пару (читатель, книга)
Reservation.add_index(
    Reservation.index(Reservation.member_id, Reservation.isbn, unique=True)
    .where(Reservation.is_active == True)
)

MODELS = [Book, Member, Loan, Reservation]
