"""
Script Studio API server.
Flask app factory: CORS, SQLAlchemy, the /api blueprint, and a startup check for
missing provider credentials.

    flask --app app run
"""
from flask import Flask
from flask_cors import CORS

from config import DATABASE_URL, validate_environment
from extensions import db
from routes import api_bp


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__)
    app.config.from_mapping(SQLALCHEMY_DATABASE_URI=DATABASE_URL)
    if test_config:
        app.config.update(test_config)

    CORS(app)
    db.init_app(app)
    app.register_blueprint(api_bp)

    with app.app_context():
        import db_models  # noqa: F401  (registers the tables)
        db.create_all()

    missing = validate_environment()
    if missing:
        print(f"[WARNING] Missing environment variables: {', '.join(missing)}")

    return app


if __name__ == "__main__":
    create_app().run(debug=True)
