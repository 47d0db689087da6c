from __future__ import annotations

from ..extensions import db


class Article(db.Model):
    """Single catalog article with its unit price."""
    __tablename__ = "articles"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    price = db.Column(db.Float, nullable=False, default=0.0)
    description = db.Column(db.Text, nullable=True)


class Gift(db.Model):
    __tablename__ = "gifts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    gift_name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)


class Pack(db.Model):
    """
    Sellable bundle of articles, optionally with a gift.

    Packs are catalog data regenerated by import jobs. The integrity repair
    never synthesizes packs; broken pack references are reassigned to the
    first pack by id.
    """
    __tablename__ = "packs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    pack_name = db.Column(db.String(255), nullable=False)
    total_price = db.Column(db.Float, nullable=False, default=0.0)
    gift_id = db.Column(db.Integer, db.ForeignKey("gifts.id"), nullable=True)

    gift = db.relationship("Gift")


class PackArticle(db.Model):
    """Join table Pack <-> Article."""
    __tablename__ = "pack_articles"

    pack_id = db.Column(db.Integer, db.ForeignKey("packs.id"), primary_key=True)
    article_id = db.Column(db.Integer, db.ForeignKey("articles.id"), primary_key=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    pack = db.relationship("Pack", backref=db.backref("pack_articles", lazy=True))
    article = db.relationship("Article")
