from __future__ import annotations

import io
from typing import Any

from flask import Flask, jsonify, render_template, request, send_file

from sitelist.scraper.logging_utils import _scraper_event


def create_captcha_app(solver: Any) -> Flask:
    """Build the local page used to solve a captcha in the browser.

    ``solver`` is a :class:`~sitelist.scraper.captcha.WebCaptchaSolver`; the
    routes only call its browser-side methods.
    """

    app = Flask(__name__)

    @app.route("/")
    def index():
        return render_template("captcha.html")

    @app.route("/captcha-image")
    def captcha_image():
        image = solver.current_image()
        if image is None:
            return jsonify({"success": False, "message": "No captcha loaded yet."}), 404
        response = send_file(io.BytesIO(image), mimetype="image/png")
        response.headers["Cache-Control"] = "no-store"
        return response

    @app.route("/refresh-captcha", methods=["POST"])
    def refresh_captcha():
        ok, message = solver.refresh()
        _scraper_event("captcha_web", action="refresh", success=ok)
        return jsonify({"success": ok, "message": message})

    @app.route("/submit-captcha", methods=["POST"])
    def submit_captcha():
        answer = request.form.get("captcha", "")
        if not answer.strip():
            return jsonify({"success": False, "message": "Please enter the captcha text."}), 400
        ok, message = solver.submit(answer)
        _scraper_event("captcha_web", action="submit", success=ok)
        return jsonify({"success": ok, "message": message})

    return app


__all__ = ["create_captcha_app"]
