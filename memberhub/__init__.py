# memberhub/__init__.py

import logging
from types import SimpleNamespace

import click
from flask import Flask, current_app
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_mail import Mail
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from werkzeug.middleware.proxy_fix import ProxyFix

from memberhub.config import load_config

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

db = SQLAlchemy()  # Database ORM
migrate = Migrate()  # DB migrations
jwt = JWTManager()
limiter = Limiter(key_func=get_remote_address)
mail = Mail()


def services():
    """Service container of the current app (built by ``build_services``)."""
    return current_app.extensions['memberhub']


def create_app(config_overrides=None):
    """Application factory: config, extensions, services, routes, CLI and scheduler."""
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

    app = Flask(__name__)
    app.config.update(load_config())
    if config_overrides:
        app.config.update(config_overrides)

    # Fix proxy headers so request.remote_addr is the client address
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    db.init_app(app)
    migrate.init_app(app, db, directory='memberhub/database/migrations')
    jwt.init_app(app)
    limiter.init_app(app)
    mail.init_app(app)

    # Ensure model modules are imported so SQLAlchemy metadata is populated
    from memberhub.database import models  # noqa: F401
    from memberhub.errors import register_error_handlers
    from memberhub.routes import bp

    register_error_handlers(app, jwt)
    app.extensions['memberhub'] = build_services(app)
    app.register_blueprint(bp)
    _register_cli(app)

    # Every process built with the scheduler enabled sweeps on its own. With several
    # workers set ELECTION_SCHEDULER=false and run `flask run-scheduler` once instead.
    if app.config.get('SCHEDULER_ENABLED') and not app.testing:
        from memberhub.elections.scheduler import start_scheduler
        start_scheduler(app)

    return app


def build_services(app):
    """Wire the service objects with their collaborators."""
    from memberhub.audit.audit_logger import AuditLogger
    from memberhub.authentication.password_reset import PasswordResetService
    from memberhub.authentication.rbac import RBACService
    from memberhub.authentication.sessions import SessionManager
    from memberhub.authentication.users import UserService
    from memberhub.elections.admin import ElectionAdminService
    from memberhub.elections.ballot import BallotService
    from memberhub.elections.eligibility import EligibilityResolver
    from memberhub.elections.results import ResultTabulator
    from memberhub.encryption.password_hashing import PasswordHashingService
    from memberhub.notifications.mail import MailService
    from memberhub.organizations.service import OrganizationService
    from memberhub.padron.importer import PadronImporter
    from memberhub.security.token_manager import TokenManager

    audit_logger = AuditLogger(log_dir=app.config['AUDIT_LOG_DIR'],
                               key_file=app.config.get('AUDIT_SIGNING_KEY_FILE'))
    mail_service = MailService()
    passwords = PasswordHashingService()
    tokens = TokenManager()

    return SimpleNamespace(
        audit=audit_logger,
        mail=mail_service,
        passwords=passwords,
        tokens=tokens,
        sessions=SessionManager(passwords, tokens, audit_logger),
        password_reset=PasswordResetService(passwords, tokens, mail_service, audit_logger),
        users=UserService(passwords, audit_logger),
        rbac=RBACService(passwords, audit_logger),
        eligibility=EligibilityResolver(),
        ballots=BallotService(audit_logger),
        results=ResultTabulator(),
        elections=ElectionAdminService(audit_logger),
        organizations=OrganizationService(audit_logger),
        padron=PadronImporter(passwords, mail_service),
    )


def _register_cli(app):
    @app.cli.command('seed')
    def seed_command():
        """Create default permissions, roles, organization and admin user."""
        from memberhub.seed import run_seed
        run_seed()
        click.echo('Seed completed')

    @app.cli.command('sweep-elections')
    def sweep_command():
        """Run one election status sweep (DRAFT->OPEN, OPEN->CLOSED)."""
        from memberhub.elections.scheduler import sweep_election_statuses
        opened, closed = sweep_election_statuses()
        click.echo(f'{opened} opened, {closed} closed')

    @app.cli.command('run-scheduler')
    def run_scheduler_command():
        """Run the election status sweep in the foreground on its own process."""
        from memberhub.elections.scheduler import start_scheduler
        start_scheduler(app, blocking=True)
