from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.accounts import AccountService, UserRepository
from app.api.routes import auth, ping, tickets
from app.core.config import Settings, get_settings
from app.core.handlers import register_exception_handlers
from app.core.logging import configure_logging, init_tracer, shutdown_tracer
from app.security import AuthProvider
from app.services.database import Database
from app.tickets import AuthorizationPolicy, TicketLifecycle, TicketQuery, TicketRepository


def _build_lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
        logger = configure_logging(settings)
        tracer_provider = init_tracer(settings)
        app.state.logger = logger
        app.state.tracer_provider = tracer_provider

        database = Database(dsn=settings.database_url, echo=settings.database_echo)
        app.state.database = database
        try:
            await database.test_connection()
            await database.ensure_schema()

            users = UserRepository(database.session_factory)
            ticket_store = TicketRepository(database.session_factory, engine=database.engine)
            app.state.account_service = AccountService(users, AuthProvider.from_settings(settings))
            app.state.policy = AuthorizationPolicy()
            app.state.ticket_lifecycle = TicketLifecycle(ticket_store)
            app.state.ticket_query = TicketQuery(ticket_store, users)
            logger.info("Helpdesk API started in %s mode", settings.environment)
            yield
        finally:
            await database.close()
            shutdown_tracer(tracer_provider)

    return lifespan


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=settings.app_name, lifespan=_build_lifespan(settings))
    register_exception_handlers(app, settings)
    app.include_router(ping.router, prefix=settings.api_prefix)
    app.include_router(auth.router, prefix=settings.api_prefix)
    app.include_router(tickets.router, prefix=settings.api_prefix)
    return app


app = create_app()
