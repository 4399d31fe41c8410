# Overview: Flask extension instances (database session and Alembic migrations).

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Services commit and then serialize the rows they return
db = SQLAlchemy(session_options={"expire_on_commit": False})
migrate = Migrate()
