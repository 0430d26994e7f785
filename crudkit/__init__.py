import logging
import os

from dotenv import load_dotenv
from flask import Flask

from crudkit.utils.logging_utils import get_logger, init_logger

from .commands.setup_commands import check_db_command, init_db_command

# Load environment variables from .env file
load_dotenv()

# Import configuration after loading .env
from .config import config, Config
from .extensions import db, ma
from .models import *
from .utils.model_utils import QueryOption, Repository

__version__ = "0.1.0"


def configure_logging(app):
    log_level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    app.logger.setLevel(log_level)

    # Configure categorized loggers using the same application config.
    init_logger(app)

    # Route SQLAlchemy's engine logger through the database category when echo is on.
    if app.config.get('SQLALCHEMY_ECHO'):
        engine_logger = logging.getLogger('sqlalchemy.engine')
        engine_logger.propagate = False
        engine_logger.handlers = list(get_logger('database').handlers)
        engine_logger.setLevel(logging.INFO)

    app.logger.info("Logging configured with level: %s", app.config.get('LOG_LEVEL', 'INFO'))


def create_app(config_name=None):
    # Determine configuration based on environment variable or parameter
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'default')

    config_class = config.get(config_name, Config)

    app = Flask(__name__)
    app.config.from_object(config_class)

    # Initialize configuration-specific setup
    config_class.init_app(app)

    configure_logging(app)
    get_logger("app").info("Application startup with config %s", config_class.__name__)

    db.init_app(app)
    ma.init_app(app)
    app.cli.add_command(init_db_command)
    app.cli.add_command(check_db_command)

    if app.config.get('AUTO_CREATE_TABLES'):
        with app.app_context():
            db.create_all()
            get_logger("database").info("Tables created on startup")

    return app
