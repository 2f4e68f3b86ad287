import coursedb as db
from coursedb import schema
from coursedb.options import SchemaNames


def test_install_is_repeatable(sqlite_conn):
    schema.install(sqlite_conn)
    assert db.select_scalar(sqlite_conn, 'SELECT COUNT(*) FROM Category') == 0
    schema.seed(sqlite_conn)
    assert db.select_scalar(sqlite_conn, 'SELECT COUNT(*) FROM Category') == len(schema.SEED_CATEGORIES)


def test_custom_view_name(sqlite_conn):
    names = SchemaNames(course_view='vwActiveCourses')
    schema.install(sqlite_conn, names)
    schema.seed(sqlite_conn)
    assert db.select_scalar(sqlite_conn, 'SELECT COUNT(*) FROM vwActiveCourses') == 3


def test_column_names():
    assert schema.column_name('duration_in_minutes') == 'DurationInMinutes'
    assert schema.column_name('id') == 'Id'
    assert schema.column_name('order') == 'Order'


def test_insert_entity_quotes_keyword_column(sqlite_conn, make_category):
    category = make_category(title='Data', order=42)
    assert schema.insert_entity(sqlite_conn, 'Category', category) == 1
    assert db.select_scalar(sqlite_conn, 'SELECT "Order" FROM Category WHERE Id = %s', category.id) == 42
