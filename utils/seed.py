from models import db
from models.user import Role, ROLE_PRECEDENCE
from models.court import Sport

DEFAULT_SPORTS = ("Badminton", "Basketball", "Cricket", "Futsal", "Tennis", "Volleyball")


def _ensure(model, names):
    existing = {row.name for row in model.query.all()}
    missing = [name for name in names if name not in existing]
    db.session.add_all(model(name=name) for name in missing)
    db.session.commit()
    return missing


def seed_roles():
    return _ensure(Role, ROLE_PRECEDENCE)


def seed_sports():
    return _ensure(Sport, DEFAULT_SPORTS)
