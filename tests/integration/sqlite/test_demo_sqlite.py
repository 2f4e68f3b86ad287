from coursedb import demo
from coursedb.exceptions import QueryError
from coursedb.models import Category
from coursedb.options import SchemaNames


def test_run_reports_every_supported_demonstration(sqlite_options):
    outcomes = demo.run(sqlite_options)

    assert all(o.ok for o in outcomes), [(o.name, o.error) for o in outcomes if not o.ok]
    names = [o.name for o in outcomes]
    assert 'delete category with procedure' not in names
    assert len(outcomes) == len(demo.demonstrations(SchemaNames())) - 2


def test_outcome_values(sqlite_options):
    outcomes = {o.name: o.value for o in demo.run(sqlite_options)}

    created = outcomes['create category']
    assert isinstance(created, Category)
    assert outcomes['update category'].title == 'Demo Updated'
    assert outcomes['delete category'] is None
    assert outcomes['create category and rollback'] == (1, None)
    assert [c.tag for c in outcomes['search courses (LIKE)']] == ['flt101']


def test_errors_become_outcomes(sqlite_options, tmp_path):
    sqlite_options.database = str(tmp_path / 'missing' / 'x.db')
    outcomes = demo.run(sqlite_options)
    assert outcomes
    assert not any(o.ok for o in outcomes)


def test_main(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv('COURSEDB_URL', f'sqlite:///{tmp_path / "demo.db"}')
    assert demo.main() == 0
    out = capsys.readouterr().out
    assert 'Backend' in out
    assert 'Demo Updated' in out


def test_main_reports_failed_category_report(tmp_path, monkeypatch):
    monkeypatch.setenv('COURSEDB_URL', f'sqlite:///{tmp_path / "demo.db"}')

    def failing_report(options):
        raise QueryError('no such table: Category')

    monkeypatch.setattr(demo, 'category_report', failing_report)
    assert demo.main() == 1


def test_category_report_is_a_dataframe(sqlite_options):
    frame = demo.category_report(sqlite_options)
    assert list(frame['Title']) == ['Backend', 'Frontend', 'Mobile']
