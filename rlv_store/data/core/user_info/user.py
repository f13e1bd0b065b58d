from rlv_store import db, login_manager
from werkzeug.security import generate_password_hash, check_password_hash
from flask_login import UserMixin
from rlv_store.buisness.core.clock import utcnow
from rlv_store.buisness.core.data_insertion_mixin import DataInsertionMixin


class User(UserMixin, DataInsertionMixin, db.Model):
    __tablename__ = 'users'

    ROLE_BUYER = 'buyer'
    ROLE_MANAGER = 'manager'
    ROLE_COURIER = 'courier'
    ROLE_ADMIN = 'admin'
    ROLES = {ROLE_BUYER, ROLE_MANAGER, ROLE_COURIER, ROLE_ADMIN}

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=ROLE_BUYER)
    # Managers run exactly one store
    store_id = db.Column(db.String(50), db.ForeignKey('stores.id'), nullable=True)
    wallet_balance = db.Column(db.Float, nullable=False, default=0.0)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    store = db.relationship('Store', foreign_keys=[store_id])

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self):
        return self.role == self.ROLE_ADMIN

    def has_role(self, *roles):
        return self.role in roles or self.is_admin

    def to_dict(self, include_audit_fields=True, exclude=None):
        exclude = set(exclude or ()) | {'password_hash'}
        return super().to_dict(include_audit_fields=include_audit_fields, exclude=exclude)

    def __repr__(self):
        return f'<User {self.username} ({self.role})>'


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))
