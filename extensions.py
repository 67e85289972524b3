"""Shared Flask extension singletons to avoid circular imports."""
from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager

# Initialize extensions without app; app_factory will bind them.
cors = CORS()
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
