"""
Flask application for the snapbox preview page and API.
"""
import time

from flask import Flask, Response, abort, jsonify, request, render_template, send_from_directory

from controller.config import AppConfig
from controller.controller import CameraController
from controller.opencv_camera import OpenCVCamera
from controller.permissions import PromptAuthority
from imaging.photo_library import PhotoLibrary


def _mjpeg(controller: CameraController, interval: float):
    while controller.ui.is_running():
        frame = controller.get_live_view_frame()
        if frame:
            yield b"--frame\r\nContent-Type: image/jpeg\r\n\r\n" + frame + b"\r\n"
        time.sleep(interval)


def create_app(camera=None, config: AppConfig | None = None, authority=None):
    if config is None:
        config = AppConfig()

    app = Flask(__name__)
    app.config.update(config.to_flask_config())

    if camera is None:
        camera = OpenCVCamera(
            position=config.camera_position,
            probe_limit=config.probe_limit,
            preview_size=config.preview_size,
            jpeg_quality=config.jpeg_quality,
        )
    if authority is None:
        authority = PromptAuthority(config.permission, device_node=config.device_node)

    controller = CameraController(
        camera=camera,
        library=PhotoLibrary(config.library_dir, jpeg_quality=config.jpeg_quality),
        authority=authority,
        max_dimensions=config.max_dimensions,
        frame_interval=config.frame_interval,
    )
    controller.start()
    app.controller = controller

    @app.route("/", methods=["GET"])
    def index():
        return render_template("index.html")

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify(app.controller.get_health().to_dict())

    @app.route("/status", methods=["GET"])
    def status():
        return jsonify(app.controller.get_status())

    @app.route("/live-view", methods=["GET"])
    def live_view():
        width = request.args.get("width", type=int)
        height = request.args.get("height", type=int)

        if width and height and width > 0 and height > 0:
            frame = app.controller.preview.render((width, height))
        else:
            frame = app.controller.get_live_view_frame()

        if not frame:
            return "", 204
        return Response(frame, mimetype="image/jpeg")

    @app.route("/stream", methods=["GET"])
    def stream():
        return Response(
            _mjpeg(app.controller, app.config["FRAME_INTERVAL"]),
            mimetype="multipart/x-mixed-replace; boundary=frame",
        )

    @app.route("/permission", methods=["GET"])
    def permission():
        gate_authority = app.controller.gate.authority
        prompting = isinstance(gate_authority, PromptAuthority) and gate_authority.is_prompting()
        return jsonify({
            "status": gate_authority.authorization_status().value,
            "prompting": prompting,
        })

    @app.route("/permission", methods=["POST"])
    def answer_permission():
        gate_authority = app.controller.gate.authority
        if not isinstance(gate_authority, PromptAuthority) or not gate_authority.is_prompting():
            return jsonify({"ok": False, "error": "no_prompt"}), 409

        data = request.get_json(silent=True) or {}
        if not isinstance(data.get("granted"), bool):
            return jsonify({"ok": False, "error": "granted must be a boolean"}), 400

        gate_authority.respond(data["granted"])
        return jsonify({"ok": True})

    @app.route("/capture", methods=["POST"])
    def capture():
        if not app.controller.get_status()["ready"]:
            return jsonify({"ok": False, "error": "not_ready"}), 409

        record = app.controller.capture_photo()
        return jsonify({"ok": True, "request_id": record.request_id})

    @app.route("/captures/<request_id>", methods=["GET"])
    def capture_status(request_id: str):
        record = app.controller.get_capture(request_id)
        if record is None:
            abort(404)
        return jsonify(record.to_dict())

    @app.route("/library/<path:filename>")
    def library(filename: str):
        return send_from_directory(app.config["PHOTO_LIBRARY"], filename)

    return app
