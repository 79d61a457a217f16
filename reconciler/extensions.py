"""
Deferred extension instances.

Created here, bound to the app in create_app() via init_app().
"""

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from reconciler.services.stripe_service import StripeGateway

db = SQLAlchemy()
migrate = Migrate()
stripe_gateway = StripeGateway()
