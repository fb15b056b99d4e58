from flask import current_app, send_from_directory

from adlinkton.web import web_bp


@web_bp.route("/<path:filename>")
def favicon_file(filename: str):
    return send_from_directory(
        current_app.config["FAVICON_STORAGE_DIR"], filename, max_age=86400
    )
