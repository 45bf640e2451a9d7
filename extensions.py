# extensions.py
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_wtf.csrf import CSRFProtect
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

db = SQLAlchemy()
migrate = Migrate()
# automatic checking is switched off in create_app; views validate through security.csrf_tokens
csrf = CSRFProtect()

# No default_limits: only the login POST is limited, with LOGIN_RATE_LIMIT.
# Create Limiter but do not bind app here; bind in create_app to allow config
limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
