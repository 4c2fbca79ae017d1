"""
Flask extension instances for PriceDesk.

- db / migrate back SqlStore (PRICING_BACKEND=sql). With the local JSON
  backend they are still initialized but hold no data.
- login_manager resolves session users through the active store, not the ORM.
- csrf guards every mutating JSON request (token from GET /auth/session).

create_app() binds them to the app before building the store and service.
"""

from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()
