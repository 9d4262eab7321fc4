# Overview: Flask extension instances for database, migrations and order notifications.

from blinker import Namespace
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()

# Receivers (kitchen display, analytics) subscribe here; signals fire after commit.
order_signals = Namespace()
order_created = order_signals.signal("order-created")
order_status_changed = order_signals.signal("order-status-changed")
