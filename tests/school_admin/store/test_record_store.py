import pytest

from school_admin.core.exceptions import DuplicateKeyError, QueryError, ValidationError

OLD_TIMESTAMP = '2000-01-01 00:00:00'


def _student(records, admission_number: str, first_name: str, **extra) -> dict:
    return records.create('students', {
        'admission_number': admission_number,
        'first_name': first_name,
        'last_name': 'Mwangi',
        **extra,
    })


def test_create_generates_unique_ids(records) -> None:
    first = _student(records, 'ADM-1', 'Ann')
    second = _student(records, 'ADM-2', 'Ben')

    assert first['id'] and second['id']
    assert first['id'] != second['id']
    assert first['created_at'] is not None


def test_create_keeps_supplied_id(records) -> None:
    row = records.create('fees', {'id': 'fee-1', 'student_id': 'student-1', 'amount': 1200})

    assert row['id'] == 'fee-1'
    assert records.find_by_id('fees', 'fee-1')['amount'] == 1200


def test_create_rejects_empty_fields(records) -> None:
    with pytest.raises(ValidationError):
        records.create('fees', {})


def test_create_duplicate_unique_value_raises_duplicate_key(records) -> None:
    _student(records, 'ADM-1', 'Ann')

    with pytest.raises(DuplicateKeyError):
        _student(records, 'ADM-1', 'Another')


def test_create_missing_required_column_raises_query_error(records) -> None:
    with pytest.raises(QueryError):
        records.create('fees', {'student_id': 'student-1'})


def test_find_by_id_returns_none_when_missing(records) -> None:
    assert records.find_by_id('students', 'missing') is None


def test_find_all_filters_orders_and_pages(records) -> None:
    for index, created_at in enumerate(['2026-01-01 08:00:00', '2026-01-03 08:00:00', '2026-01-02 08:00:00']):
        _student(records, f'ADM-{index}', f'Student {index}', class_name='4B', created_at=created_at)
    _student(records, 'ADM-9', 'Other', class_name='5A')

    rows = records.find_all('students', {'class_name': '4B'})
    assert [row['admission_number'] for row in rows] == ['ADM-1', 'ADM-2', 'ADM-0']

    page = records.find_all('students', {'class_name': '4B'}, limit=1, offset=1)
    assert [row['admission_number'] for row in page] == ['ADM-2']

    oldest = records.find_one('students', {'class_name': '4B'}, order_by='created_at ASC')
    assert oldest['admission_number'] == 'ADM-0'


def test_update_by_id_returns_none_when_missing(records) -> None:
    assert records.update_by_id('students', 'missing', {'first_name': 'Nobody'}) is None
    assert records.count('students') == 0


def test_update_by_id_advances_updated_at(records) -> None:
    student = _student(records, 'ADM-1', 'Ann', updated_at=OLD_TIMESTAMP)

    updated = records.update_by_id('students', student['id'], {'first_name': 'Anne'})

    assert updated['first_name'] == 'Anne'
    assert updated['id'] == student['id']
    assert str(updated['updated_at']) > OLD_TIMESTAMP


def test_update_by_id_rejects_empty_fields(records) -> None:
    student = _student(records, 'ADM-1', 'Ann')

    with pytest.raises(ValidationError):
        records.update_by_id('students', student['id'], {})


def test_update_by_id_skips_stamp_for_tables_without_updated_at(db, records) -> None:
    db.execute('CREATE TABLE notes (id VARCHAR(36) PRIMARY KEY, body TEXT)')
    note = records.create('notes', {'body': 'first'})

    updated = records.update_by_id('notes', note['id'], {'body': 'second'})

    assert updated == {'id': note['id'], 'body': 'second'}


def test_delete_by_id_twice(records) -> None:
    student = _student(records, 'ADM-1', 'Ann')

    deleted = records.delete_by_id('students', student['id'])

    assert deleted['id'] == student['id']
    assert records.delete_by_id('students', student['id']) is None
    assert records.find_by_id('students', student['id']) is None


def test_count_and_exists(records) -> None:
    _student(records, 'ADM-1', 'Ann', class_name='4B')
    _student(records, 'ADM-2', 'Ben', class_name='4B')

    assert records.count('students') == 2
    assert records.count('students', {'class_name': '4B'}) == 2
    assert records.exists('students', {'admission_number': 'ADM-2'})
    assert not records.exists('students', {'admission_number': 'ADM-3'})


def test_search_is_case_insensitive_and_filtered(records) -> None:
    _student(records, 'ADM-1', 'Annabel', class_name='4B')
    _student(records, 'ADM-2', 'Joanna', class_name='5A')
    _student(records, 'ADM-3', 'Ben', class_name='4B')

    everywhere = records.search('students', ('first_name', 'last_name'), 'ANN')
    in_class = records.search('students', ('first_name', 'last_name'), 'ann', {'class_name': '4B'})

    assert {row['admission_number'] for row in everywhere} == {'ADM-1', 'ADM-2'}
    assert [row['admission_number'] for row in in_class] == ['ADM-1']


def test_bulk_insert_creates_all_records(records) -> None:
    created = records.bulk_insert('fees', [
        {'student_id': 'student-1', 'amount': 100},
        {'student_id': 'student-2', 'amount': 200},
    ])

    assert [row['amount'] for row in created] == [100, 200]
    assert records.count('fees') == 2


def test_bulk_insert_empty_list(records) -> None:
    assert records.bulk_insert('fees', []) == []


def test_bulk_insert_rolls_back_on_duplicate(records) -> None:
    records.create('fees', {'id': 'fee-1', 'student_id': 'student-1', 'amount': 100})

    with pytest.raises(DuplicateKeyError):
        records.bulk_insert('fees', [
            {'id': 'fee-2', 'student_id': 'student-2', 'amount': 200},
            {'id': 'fee-1', 'student_id': 'student-3', 'amount': 300},
        ])

    assert records.count('fees') == 1
    assert records.find_by_id('fees', 'fee-2') is None


def test_bulk_insert_joins_caller_transaction(db, records) -> None:
    with pytest.raises(RuntimeError):
        with db.transaction() as connection:
            records.bulk_insert('inventory', [{'item_name': 'Chalk', 'quantity': 40}], connection=connection)
            records.update_by_id('inventory', 'missing', {'quantity': 1}, connection=connection)
            raise RuntimeError('abort')

    assert records.count('inventory') == 0


@pytest.mark.parametrize(
    ('limit', 'offset', 'expected'),
    [
        (None, None, ['ADM-3', 'ADM-2', 'ADM-1']),
        (2, None, ['ADM-3', 'ADM-2']),
        (None, 1, ['ADM-2', 'ADM-1']),
        (1, 1, ['ADM-2']),
    ],
)
def test_find_all_runs_every_limit_and_offset_combination(records, limit, offset, expected: list) -> None:
    for day in (1, 2, 3):
        _student(records, f'ADM-{day}', 'Ann', created_at=f'2026-01-0{day} 08:00:00')

    rows = records.find_all('students', limit=limit, offset=offset)

    assert [row['admission_number'] for row in rows] == expected


def test_search_pages_with_offset(records) -> None:
    for day in (1, 2, 3):
        _student(records, f'ADM-{day}', f'Ann {day}', created_at=f'2026-01-0{day} 08:00:00')

    first_page = records.search('students', ('first_name',), 'ann', limit=2, offset=0)
    second_page = records.search('students', ('first_name',), 'ann', limit=2, offset=2)

    assert [row['admission_number'] for row in first_page] == ['ADM-3', 'ADM-2']
    assert [row['admission_number'] for row in second_page] == ['ADM-1']


def test_search_treats_wildcards_literally(records) -> None:
    _student(records, 'ADM_1', 'Ann')
    _student(records, 'ADMX1', 'Ben')

    rows = records.search('students', ('admission_number',), 'ADM_1')

    assert [row['admission_number'] for row in rows] == ['ADM_1']
