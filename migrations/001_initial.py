from peewee_migrate import Migrator
from circulation.models import Book, Member, Loan, Reservation


def migrate(migrator: Migrator, database, fake=False, **kwargs):
    migrator.create_model(Book)
    migrator.create_model(Member)
    migrator.create_model(Loan)
    migrator.create_model(Reservation)


def rollback(migrator: Migrator, database, fake=False, **kwargs):
    migrator.drop_model(Reservation)
    migrator.drop_model(Loan)
    migrator.drop_model(Member)
    migrator.drop_model(Book)
