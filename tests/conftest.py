import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def app_context():
    """アプリケーションコンテキストを提供するfixture(SQLiteメモリDB)"""
    from flask import Flask
    from flask_babel import Babel

    from core.db import db
    import features.certmanager.infrastructure.models  # noqa: F401 - テーブル定義の登録

    app = Flask(__name__)
    app.config.update(
        TESTING=True,
        SECRET_KEY="test-secret-key",
        SQLALCHEMY_DATABASE_URI="sqlite:///:memory:",
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
    )
    Babel(app)
    db.init_app(app)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
