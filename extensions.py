"""Shared Flask extension singletons to avoid circular imports."""
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Initialize extensions without app; create_app will bind them.
db = SQLAlchemy()
migrate = Migrate()
