# routes/disk.py
from flask import Blueprint, current_app, jsonify

bp = Blueprint("disk", __name__, url_prefix="/api")


@bp.get("/disk")
def disk_usage():
    return jsonify(current_app.extensions["filedrop"].disk_usage().to_dict())
