import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from school_admin.core import config
from school_admin.core.exceptions import SchoolAdminError
from school_admin.core.logging_config import setup_logging
from school_admin.database import ConnectionManager, init_schema
from school_admin.routes import auth_routes, user_routes
from school_admin.routes.resource_routes import resource_routers

logger = logging.getLogger(__name__)


async def handle_app_error(request: Request, exc: SchoolAdminError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error('%s %s failed: %s', request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        location = '.'.join(str(part) for part in error.get('loc', ()) if part != 'body')
        message = str(error.get('msg', 'Invalid value')).removeprefix('Value error, ')
        messages.append(f'{location}: {message}' if location else message)
    return JSONResponse(
        status_code=400,
        content=jsonable_encoder({'error': 'Validation failed', 'message': '; '.join(messages)}),
    )


def create_app(db: ConnectionManager | None = None, create_schema: bool = True) -> FastAPI:
    setup_logging()
    config.validate_runtime_config()

    app = FastAPI(title='School Administration API')
    app.state.db = db or ConnectionManager.from_config()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=['GET', 'POST', 'PUT', 'PATCH', 'DELETE'],
        allow_headers=['Content-Type', 'Authorization'],
    )
    app.add_exception_handler(SchoolAdminError, handle_app_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)

    @app.on_event('startup')
    def initialize_database() -> None:
        if not create_schema:
            return
        try:
            init_schema(app.state.db.engine)
            app.state.db.forget_columns()
        except SQLAlchemyError:
            logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')

    @app.on_event('shutdown')
    def close_pool() -> None:
        app.state.db.dispose()

    @app.get('/')
    def root():
        return {'status': 'School Administration API Running'}

    @app.get('/health')
    def health():
        report = app.state.db.health_check()
        status_code = 200 if report['status'] == 'healthy' else 503
        return JSONResponse(status_code=status_code, content=report)

    app.include_router(auth_routes.router, prefix='/auth')
    app.include_router(user_routes.router, prefix='/users')
    for resource, router in resource_routers():
        app.include_router(router, prefix=f'/{resource}')

    return app
