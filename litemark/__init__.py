from flask import Flask, request

from litemark.api import api_bp
from litemark.auth import auth_bp
from litemark.config import Config
from litemark.extensions import get_repository, init_repository
from litemark.jobs.scheduler import run_webdav_backup, start_scheduler


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    init_repository(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(api_bp)

    @app.after_request
    def add_cors_headers(response):
        if request.path.startswith("/api"):
            response.headers["Access-Control-Allow-Origin"] = app.config["CORS_ORIGIN"]
            response.headers["Access-Control-Allow-Methods"] = (
                "GET, POST, PUT, DELETE, OPTIONS"
            )
            response.headers["Access-Control-Allow-Headers"] = (
                "Content-Type, Authorization"
            )
        return response

    @app.cli.command("backup-webdav")
    def backup_webdav_command():
        result = run_webdav_backup(app)
        if result is None:
            print("WebDAV backup did not run; check the logs.")
        else:
            print(f"Backed up {result['bookmarksCount']} bookmarks to {result['path']}.")

    @app.cli.command("refresh-cache")
    def refresh_cache_command():
        repository = get_repository(app)
        bookmarks = repository.force_refresh_bookmarks_cache()
        repository.force_refresh_settings_cache()
        print(f"Reloaded {len(bookmarks)} bookmarks from {repository.store.kind} storage.")

    start_scheduler(app)
    return app
