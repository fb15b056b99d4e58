import hashlib
import secrets
from datetime import datetime, timezone

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from adlinkton.extensions import db, login_manager


DEFAULT_DISPLAY_MODE = "tab"
DEFAULT_LINK_COUNT = 10


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


link_categories = db.Table(
    "link_categories",
    db.Column("link_id", db.Integer, db.ForeignKey("links.id"), primary_key=True),
    db.Column(
        "category_id", db.Integer, db.ForeignKey("categories.id"), primary_key=True
    ),
    db.Column("sort_order", db.Integer, nullable=False, default=0),
)


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    links = db.relationship("Link", backref="user", lazy=True)
    categories = db.relationship("Category", backref="user", lazy=True)

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)


@login_manager.user_loader
def load_user(user_id: str):
    return db.session.get(User, int(user_id))


class Category(db.Model):
    __tablename__ = "categories"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    parent_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    display_mode = db.Column(
        db.String(32), nullable=False, default=DEFAULT_DISPLAY_MODE
    )
    default_count = db.Column(db.Integer, nullable=False, default=DEFAULT_LINK_COUNT)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    children = db.relationship(
        "Category", backref=db.backref("parent", remote_side=[id])
    )

    __table_args__ = (
        db.Index("ix_category_user_parent_name", "user_id", "parent_id", "name"),
    )

    def as_dict(self):
        return {
            "id": self.id,
            "parent_id": self.parent_id,
            "name": self.name,
            "display_mode": self.display_mode,
            "default_count": self.default_count,
            "sort_order": self.sort_order,
            "created_at": self.created_at.isoformat(),
        }


class Link(db.Model):
    __tablename__ = "links"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    url = db.Column(db.String(2048), nullable=False)
    name = db.Column(db.String(512), nullable=False)
    favicon_path = db.Column(db.String(512), nullable=True)
    is_favorite = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    categories = db.relationship(
        "Category", secondary=link_categories, backref="links"
    )

    __table_args__ = (db.UniqueConstraint("user_id", "url", name="uq_link_user_url"),)

    def as_dict(self):
        return {
            "id": self.id,
            "url": self.url,
            "name": self.name,
            "favicon_path": self.favicon_path,
            "is_favorite": self.is_favorite,
            "category_ids": [category.id for category in self.categories],
            "created_at": self.created_at.isoformat(),
        }


class ApiToken(db.Model):
    __tablename__ = "api_tokens"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    name = db.Column(db.String(120), nullable=False)
    token_hash = db.Column(db.String(128), nullable=False, unique=True)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    user = db.relationship("User", backref="api_tokens")

    @staticmethod
    def issue_token(prefix="adl"):
        token = f"{prefix}_{secrets.token_urlsafe(32)}"
        token_hash = hashlib.sha256(token.encode("utf-8")).hexdigest()
        return token, token_hash
