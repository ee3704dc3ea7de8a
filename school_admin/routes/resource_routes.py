"""CRUD routers for the school resources, one per permission-matrix resource.

Handlers only call the record store. Request bodies are checked against the
table's declared columns so user input never becomes a SQL identifier.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, status

from school_admin.auth.dependencies import get_record_store, require_permission
from school_admin.auth.permissions import CREATE, DELETE, READ, UPDATE
from school_admin.core.exceptions import NotFoundError, ValidationError
from school_admin.models.records import (
    Fee,
    InventoryItem,
    PayrollEntry,
    ProcurementRequest,
    Setting,
    StaffMember,
    Student,
)
from school_admin.store.query_builder import Predicate
from school_admin.store.record_store import RecordStore

MAX_PAGE_SIZE = 100
READ_ONLY_COLUMNS = frozenset({'created_at', 'updated_at'})

RESOURCE_TABLES = {
    'students': (Student, ('first_name', 'last_name', 'admission_number', 'guardian_name')),
    'fees': (Fee, ('reference', 'term', 'status')),
    'staff': (StaffMember, ('full_name', 'staff_number', 'position', 'department')),
    'payroll': (PayrollEntry, ('period', 'status')),
    'procurement': (ProcurementRequest, ('item_name', 'supplier', 'status')),
    'inventory': (InventoryItem, ('item_name', 'category', 'location')),
    'settings': (Setting, ('key', 'description')),
}


def clean_fields(payload: dict[str, Any], writable_columns: frozenset[str], table: str) -> dict[str, Any]:
    unknown = sorted(set(payload) - writable_columns)
    if unknown:
        raise ValidationError(f"Unknown {table} field(s): {', '.join(unknown)}")
    if not payload:
        raise ValidationError('No fields provided')
    return dict(payload)


def build_resource_router(resource: str, model, search_fields: tuple[str, ...]) -> APIRouter:
    table = model.__tablename__
    columns = frozenset(column.name for column in model.__table__.columns)
    create_columns = columns - READ_ONLY_COLUMNS
    update_columns = create_columns - {'id'}

    router = APIRouter(tags=[resource])

    @router.get('')
    def list_records(
        q: str | None = None,
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=20, ge=1, le=MAX_PAGE_SIZE),
        _user=Depends(require_permission(resource, READ)),
        records: RecordStore = Depends(get_record_store),
    ):
        if q and q.strip():
            rows = records.search(table, search_fields, q, limit=limit, offset=(page - 1) * limit)
            total = records.count(table, Predicate(search_fields=search_fields, term=q.strip()))
        else:
            rows = records.find_all(table, limit=limit, offset=(page - 1) * limit)
            total = records.count(table)
        return {'data': rows, 'total': total, 'page': page, 'limit': limit}

    @router.get('/{record_id}')
    def get_record(
        record_id: str,
        _user=Depends(require_permission(resource, READ)),
        records: RecordStore = Depends(get_record_store),
    ):
        row = records.find_by_id(table, record_id)
        if row is None:
            raise NotFoundError(f'{resource} record not found')
        return row

    @router.post('', status_code=status.HTTP_201_CREATED)
    def create_record(
        payload: dict[str, Any] = Body(...),
        _user=Depends(require_permission(resource, CREATE)),
        records: RecordStore = Depends(get_record_store),
    ):
        return records.create(table, clean_fields(payload, create_columns, table))

    @router.post('/bulk', status_code=status.HTTP_201_CREATED)
    def bulk_create_records(
        payload: list[dict[str, Any]] = Body(...),
        _user=Depends(require_permission(resource, CREATE)),
        records: RecordStore = Depends(get_record_store),
    ):
        rows = [clean_fields(item, create_columns, table) for item in payload]
        return {'data': records.bulk_insert(table, rows)}

    @router.put('/{record_id}')
    def update_record(
        record_id: str,
        payload: dict[str, Any] = Body(...),
        _user=Depends(require_permission(resource, UPDATE)),
        records: RecordStore = Depends(get_record_store),
    ):
        row = records.update_by_id(table, record_id, clean_fields(payload, update_columns, table))
        if row is None:
            raise NotFoundError(f'{resource} record not found')
        return row

    @router.delete('/{record_id}')
    def delete_record(
        record_id: str,
        _user=Depends(require_permission(resource, DELETE)),
        records: RecordStore = Depends(get_record_store),
    ):
        row = records.delete_by_id(table, record_id)
        if row is None:
            raise NotFoundError(f'{resource} record not found')
        return row

    return router


def resource_routers() -> list[tuple[str, APIRouter]]:
    return [
        (resource, build_resource_router(resource, model, search_fields))
        for resource, (model, search_fields) in RESOURCE_TABLES.items()
    ]
