from flask import current_app, jsonify
from werkzeug.exceptions import RequestEntityTooLarge

from errors import (
    DuplicateIdentifierError,
    IncompleteUploadError,
    IOFailureError,
    NotFoundError,
    SessionNotFoundError,
    UploadStateError,
)
from logging_config import get_logger

from .disk import bp as disk_bp
from .files import bp as files_bp
from .uploads import bp as uploads_bp

logger = get_logger(__name__)


def register_routes(app):
    app.register_blueprint(files_bp)
    app.register_blueprint(uploads_bp)
    app.register_blueprint(disk_bp)


def register_error_handlers(app):
    @app.errorhandler(SessionNotFoundError)
    def unknown_upload(e):
        return jsonify(error="unknown-upload"), 404

    @app.errorhandler(NotFoundError)
    def not_found(e):
        return jsonify(error="not-found"), 404

    @app.errorhandler(IncompleteUploadError)
    def incomplete(e):
        return jsonify(error="incomplete", have=e.total - len(e.missing), need=e.total, missing=e.missing), 409

    @app.errorhandler(UploadStateError)
    def bad_state(e):
        return jsonify(error="bad-state", details=str(e)), 409

    @app.errorhandler(IOFailureError)
    def io_error(e):
        logger.error("I/O failure: %s", e)
        return jsonify(error="io-error", details=str(e)), 500

    @app.errorhandler(DuplicateIdentifierError)
    def duplicate_id(e):
        logger.critical("Duplicate file id %s", e)
        return jsonify(error="duplicate-id"), 500

    @app.errorhandler(RequestEntityTooLarge)
    def too_large(e):
        return jsonify(error="too-large", max_bytes=current_app.config["MAX_CONTENT_LENGTH"]), 413
